import logging
from typing import Dict

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..deps import get_gateway, get_store, require_admin
from ..llm.errors import LLMError
from ..llm.gateway import ModelGateway
from ..store import ContentStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/config", response_model=Dict[str, str])
def get_config(store: ContentStore = Depends(get_store)):
    return store.get_config_map()


@router.post("/config", dependencies=[Depends(require_admin)])
def save_config(payload: Dict[str, str], store: ContentStore = Depends(get_store)):
    for key, value in payload.items():
        store.set_config(key, value)
    return {"message": "saved"}


@router.get("/llm/models")
def list_models(gateway: ModelGateway = Depends(get_gateway)):
    try:
        models = gateway.list_models()
    except (LLMError, httpx.HTTPError) as e:
        logger.warning("Listing models failed: %s", e)
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {"models": models}


@router.post("/llm/test")
def test_connection(gateway: ModelGateway = Depends(get_gateway)):
    try:
        response = gateway.test_connection()
    except (LLMError, httpx.HTTPError) as e:
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    return {"success": True, "message": "connection ok", "response": response}
