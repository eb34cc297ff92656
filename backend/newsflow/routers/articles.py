from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..config import Settings
from ..deps import get_app_settings, get_job_runner, get_store, require_admin
from ..jobs import ProcessingJobRunner
from ..models import ArticleStatus
from ..schemas import ArticleOut, ArticlePage
from ..store import ContentStore


router = APIRouter()

PAGE_SIZE = 20


@router.get("/articles", response_model=ArticlePage)
def list_articles(
    status: Optional[ArticleStatus] = Query(None, description="pending, processed or filtered"),
    page: int = Query(1, ge=1),
    store: ContentStore = Depends(get_store),
):
    items = store.list_articles(status=status, offset=(page - 1) * PAGE_SIZE, limit=PAGE_SIZE)
    return ArticlePage(
        data=[ArticleOut.model_validate(a) for a in items],
        total=store.count_articles(status),
        page=page,
    )


@router.post("/articles/process", dependencies=[Depends(require_admin)])
def process_articles(
    limit: Optional[int] = Query(None, ge=1, le=500, description="batch size"),
    settings: Settings = Depends(get_app_settings),
    runner: ProcessingJobRunner = Depends(get_job_runner),
):
    job = runner.start(batch_size=limit or settings.manual_batch_size)
    return {"message": "processing started", "job": job.to_dict()}


@router.get("/articles/process/jobs")
def list_processing_jobs(
    limit: int = Query(10, ge=1, le=50),
    runner: ProcessingJobRunner = Depends(get_job_runner),
):
    return [job.to_dict() for job in runner.list_recent(limit)]


@router.get("/articles/process/{job_id}")
def get_processing_job(job_id: str, runner: ProcessingJobRunner = Depends(get_job_runner)):
    job = runner.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="job not found")
    return job.to_dict()


@router.post("/articles/process/{job_id}/cancel", dependencies=[Depends(require_admin)])
def cancel_processing_job(job_id: str, runner: ProcessingJobRunner = Depends(get_job_runner)):
    job = runner.cancel(job_id)
    if job is None:
        raise HTTPException(status_code=409, detail="job not running")
    return job.to_dict()
