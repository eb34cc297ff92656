from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from .config import Settings
from .ingest.rss_fetcher import FeedIngestor
from .jobs import ProcessingJobRunner
from .llm.gateway import ModelGateway
from .store import ContentStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_gateway(request: Request) -> ModelGateway:
    return request.app.state.gateway


def get_ingestor(request: Request) -> FeedIngestor:
    return request.app.state.ingestor


def get_job_runner(request: Request) -> ProcessingJobRunner:
    return request.app.state.job_runner


def require_admin(
    x_admin_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    # No token configured: endpoints are open
    if settings.admin_token and x_admin_token != settings.admin_token:
        raise HTTPException(status_code=401, detail="Unauthorized")
