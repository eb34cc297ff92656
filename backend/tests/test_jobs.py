"""Tests for jobs.py"""

import threading

import pytest

from conftest import FakeGateway
from newsflow.jobs import JobStatus, ProcessingJob, ProcessingJobRunner
from newsflow.models import ArticleStatus
from newsflow.processor import ArticleProcessor


class BlockingGateway(FakeGateway):
    """Holds every call until ``release`` is set."""

    def __init__(self):
        super().__init__(filter_reply='{"worth": false, "reason": "x"}')
        self.entered = threading.Event()
        self.release = threading.Event()
        self.on_call = self._block

    def _block(self, call_no, system_prompt, user_content):
        self.entered.set()
        assert self.release.wait(5)


class TestProcessingJob:
    def test_to_dict(self):
        job = ProcessingJob(id="job-1", batch_size=5, items_total=10, items_succeeded=3, items_failed=1)
        d = job.to_dict()
        assert d["id"] == "job-1"
        assert d["status"] == "pending"
        assert d["items_processed"] == 4
        assert d["finished_at"] is None
        assert d["cancel_requested"] is False


class TestProcessingJobRunner:
    def test_runs_to_completion(self, store, make_articles, fake_gateway):
        make_articles(4)
        runner = ProcessingJobRunner(ArticleProcessor(store, fake_gateway))

        job = runner.start(batch_size=2)
        finished = runner.wait(job.id, timeout=10)

        assert finished.status == JobStatus.COMPLETED
        assert finished.items_total == 4
        assert finished.items_succeeded == 4
        assert finished.finished_at is not None
        assert store.count_articles(ArticleStatus.PENDING) == 0

    def test_single_active_job(self, store, make_articles):
        make_articles(2)
        gateway = BlockingGateway()
        runner = ProcessingJobRunner(ArticleProcessor(store, gateway, concurrency=1))

        first = runner.start(batch_size=5)
        assert gateway.entered.wait(5)
        second = runner.start(batch_size=5)

        assert second is first
        assert runner.get_running() is first

        gateway.release.set()
        assert runner.wait(first.id, timeout=10).status == JobStatus.COMPLETED
        assert runner.get_running() is None

    def test_cancel(self, store, make_articles):
        make_articles(6)
        gateway = BlockingGateway()
        runner = ProcessingJobRunner(ArticleProcessor(store, gateway, concurrency=1))

        job = runner.start(batch_size=10)
        assert gateway.entered.wait(5)
        assert runner.cancel(job.id) is job
        gateway.release.set()
        finished = runner.wait(job.id, timeout=10)

        assert finished.status == JobStatus.CANCELLED
        assert finished.items_processed < 6
        assert store.count_articles(ArticleStatus.PENDING) == 6 - finished.items_succeeded
        # Finished jobs cannot be cancelled again
        assert runner.cancel(job.id) is None

    def test_failure_is_recorded(self, store, fake_gateway):
        processor = ArticleProcessor(store, fake_gateway)

        def boom(**kwargs):
            raise RuntimeError("database unavailable")

        processor.process_pending = boom
        runner = ProcessingJobRunner(processor)

        job = runner.wait(runner.start(batch_size=1).id, timeout=10)

        assert job.status == JobStatus.FAILED
        assert job.error == "database unavailable"

    def test_unknown_job(self, store, fake_gateway):
        runner = ProcessingJobRunner(ArticleProcessor(store, fake_gateway))
        assert runner.get("missing") is None
        assert runner.cancel("missing") is None
        assert runner.wait("missing", timeout=0.1) is None

    def test_list_recent(self, store, fake_gateway):
        runner = ProcessingJobRunner(ArticleProcessor(store, fake_gateway))
        ids = []
        for _ in range(3):
            job = runner.start(batch_size=1)
            runner.wait(job.id, timeout=10)
            ids.append(job.id)

        recent = runner.list_recent(limit=2)
        assert len(recent) == 2
        assert recent[0].id == ids[-1]
