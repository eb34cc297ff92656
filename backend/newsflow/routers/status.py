from fastapi import APIRouter, Depends, Request

from ..deps import get_store
from ..schemas import SystemStatus
from ..status import get_system_status
from ..store import ContentStore


router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/status", response_model=SystemStatus)
def system_status(request: Request, store: ContentStore = Depends(get_store)):
    return get_system_status(store, getattr(request.app.state, "scheduler", None))
