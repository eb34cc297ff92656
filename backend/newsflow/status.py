from __future__ import annotations

from typing import Optional

from apscheduler.schedulers.base import BaseScheduler

from .models import ArticleStatus
from .scheduler import FETCH_JOB_ID, PROCESS_JOB_ID, next_run_time
from .schemas import SystemStatus
from .store import ContentStore


def get_system_status(store: ContentStore, scheduler: Optional[BaseScheduler] = None) -> SystemStatus:
    status = SystemStatus(
        total_articles=store.count_articles(),
        pending_articles=store.count_articles(ArticleStatus.PENDING),
        processed_articles=store.count_articles(ArticleStatus.PROCESSED),
        filtered_articles=store.count_articles(ArticleStatus.FILTERED),
        total_feeds=store.count_feeds(),
        enabled_feeds=store.count_feeds(enabled=True),
    )
    if scheduler is not None:
        status.next_fetch_time = next_run_time(scheduler, FETCH_JOB_ID)
        status.next_process_time = next_run_time(scheduler, PROCESS_JOB_ID)
    return status
