"""Tests for scheduler.py and status.py"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

from apscheduler.triggers.cron import CronTrigger

from newsflow.config import Settings
from newsflow.models import Article, ArticleStatus, Feed
from newsflow.scheduler import FETCH_JOB_ID, PROCESS_JOB_ID, create_scheduler, next_run_time
from newsflow.status import get_system_status


def make_settings(**overrides):
    values = {"scheduler_enabled": True, "fetch_cron": "*/30 * * * *", "process_cron": "*/10 * * * *", "scheduled_batch_size": 5}
    values.update(overrides)
    return Settings(**values)


class TestCreateScheduler:
    def test_registers_both_jobs(self):
        scheduler = create_scheduler(MagicMock(), MagicMock(), make_settings())

        fetch = scheduler.get_job(FETCH_JOB_ID)
        process = scheduler.get_job(PROCESS_JOB_ID)

        assert isinstance(fetch.trigger, CronTrigger)
        assert isinstance(process.trigger, CronTrigger)
        assert fetch.max_instances == 1
        assert process.coalesce is True

    def test_fetch_job_calls_ingestor(self):
        ingestor = MagicMock()
        ingestor.fetch_all_enabled.return_value = 3
        scheduler = create_scheduler(ingestor, MagicMock(), make_settings())

        job = scheduler.get_job(FETCH_JOB_ID)
        job.func(*job.args)

        ingestor.fetch_all_enabled.assert_called_once_with()

    def test_process_job_uses_scheduled_batch_size(self):
        runner = MagicMock()
        scheduler = create_scheduler(MagicMock(), runner, make_settings(scheduled_batch_size=7))

        job = scheduler.get_job(PROCESS_JOB_ID)
        job.func(*job.args)

        runner.start.assert_called_once_with(batch_size=7)

    def test_next_run_time_when_stopped(self):
        scheduler = create_scheduler(MagicMock(), MagicMock(), make_settings())
        assert next_run_time(scheduler, FETCH_JOB_ID) is None


class TestSystemStatus:
    def test_counts(self, store, feed):
        store.create_feed(Feed(name="Off", url="https://off.example/rss", enabled=False))
        store.find_or_create_article(Article(title="a", link="https://e.com/a"))
        store.find_or_create_article(
            Article(title="b", link="https://e.com/b", status=ArticleStatus.FILTERED, processed_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        )

        status = get_system_status(store)

        assert status.total_articles == 2
        assert status.pending_articles == 1
        assert status.filtered_articles == 1
        assert status.processed_articles == 0
        assert status.total_feeds == 2
        assert status.enabled_feeds == 1
        assert status.next_fetch_time is None

    def test_next_run_times_from_scheduler(self, store):
        fetch_at = datetime(2025, 1, 1, 12, 30, tzinfo=timezone.utc)
        process_at = datetime(2025, 1, 1, 12, 10, tzinfo=timezone.utc)
        scheduler = MagicMock()
        scheduler.running = True
        scheduler.get_job.side_effect = lambda job_id: MagicMock(
            next_run_time=fetch_at if job_id == FETCH_JOB_ID else process_at
        )

        status = get_system_status(store, scheduler)

        assert status.next_fetch_time == fetch_at
        assert status.next_process_time == process_at
