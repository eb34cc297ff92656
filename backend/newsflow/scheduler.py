from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import Settings, get_settings
from .ingest.rss_fetcher import FeedIngestor
from .jobs import ProcessingJobRunner

logger = logging.getLogger(__name__)

FETCH_JOB_ID = "fetch_feeds"
PROCESS_JOB_ID = "process_articles"


def _fetch_feeds(ingestor: FeedIngestor) -> None:
    logger.info("Scheduled feed fetch")
    new_items = ingestor.fetch_all_enabled()
    logger.info("Scheduled feed fetch stored %d new articles", new_items)


def _process_articles(runner: ProcessingJobRunner, batch_size: int) -> None:
    logger.info("Scheduled processing")
    runner.start(batch_size=batch_size)


def create_scheduler(
    ingestor: FeedIngestor,
    runner: ProcessingJobRunner,
    settings: Optional[Settings] = None,
) -> AsyncIOScheduler:
    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _fetch_feeds,
        CronTrigger.from_crontab(settings.fetch_cron),
        args=[ingestor],
        id=FETCH_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        _process_articles,
        CronTrigger.from_crontab(settings.process_cron),
        args=[runner, settings.scheduled_batch_size],
        id=PROCESS_JOB_ID,
        max_instances=1,
        coalesce=True,
    )

    return scheduler


def next_run_time(scheduler: BaseScheduler, job_id: str) -> Optional[datetime]:
    if not scheduler.running:
        return None
    job = scheduler.get_job(job_id)
    return job.next_run_time if job is not None else None
