"""Supervised processing jobs.

Provides:
- ProcessingJob: state of one drain, serializable for the API
- ProcessingJobRunner: starts drains on a background thread, at most one at a time
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .processor import ArticleProcessor, ProcessingCancelled, ProgressSnapshot

logger = logging.getLogger(__name__)

# Finished jobs kept in memory for inspection
MAX_FINISHED_JOBS = 50


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ProcessingJob:
    """Tracks state of one processing drain."""

    id: str
    batch_size: int
    status: JobStatus = JobStatus.PENDING
    items_total: int = 0
    items_succeeded: int = 0
    items_failed: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def items_processed(self) -> int:
        return self.items_succeeded + self.items_failed

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.RUNNING)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "batch_size": self.batch_size,
            "items_total": self.items_total,
            "items_processed": self.items_processed,
            "items_succeeded": self.items_succeeded,
            "items_failed": self.items_failed,
            "cancel_requested": self.cancel_requested,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
        }


class ProcessingJobRunner:
    """Runs ``ArticleProcessor.process_pending`` as observable background jobs. Thread-safe."""

    def __init__(self, processor: ArticleProcessor):
        self._processor = processor
        self._jobs: Dict[str, ProcessingJob] = {}
        self._lock = threading.Lock()

    def start(self, batch_size: int) -> ProcessingJob:
        """Start a drain, or return the one already running."""
        with self._lock:
            active = self._active_locked()
            if active is not None:
                logger.info("Processing job %s already running", active.id)
                return active
            job = ProcessingJob(id=str(uuid.uuid4()), batch_size=batch_size)
            self._jobs[job.id] = job
            self._prune_locked()

        thread = threading.Thread(target=self._run, args=(job,), name=f"process-job-{job.id[:8]}", daemon=True)
        thread.start()
        return job

    def _run(self, job: ProcessingJob) -> None:
        job.status = JobStatus.RUNNING

        def on_progress(snapshot: ProgressSnapshot) -> None:
            job.items_total = snapshot.total
            job.items_succeeded = snapshot.succeeded
            job.items_failed = snapshot.failed

        try:
            stats = self._processor.process_pending(
                batch_size=job.batch_size,
                cancel_event=job._cancel,
                on_progress=on_progress,
            )
            on_progress(stats.snapshot())
            job.status = JobStatus.COMPLETED
        except ProcessingCancelled as e:
            on_progress(e.stats.snapshot())
            job.status = JobStatus.CANCELLED
        except Exception as e:
            logger.exception("Processing job %s failed", job.id)
            job.status = JobStatus.FAILED
            job.error = str(e)
        finally:
            job.finished_at = datetime.now(timezone.utc)
            job._done.set()

    def cancel(self, job_id: str) -> Optional[ProcessingJob]:
        """Request cancellation. In-flight articles still finish."""
        job = self.get(job_id)
        if job is None or not job.is_active:
            return None
        job._cancel.set()
        return job

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[ProcessingJob]:
        job = self.get(job_id)
        if job is None:
            return None
        job._done.wait(timeout)
        return job

    def get(self, job_id: str) -> Optional[ProcessingJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def get_running(self) -> Optional[ProcessingJob]:
        with self._lock:
            return self._active_locked()

    def list_recent(self, limit: int = 10) -> List[ProcessingJob]:
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.started_at, reverse=True)
        return jobs[:limit]

    def _active_locked(self) -> Optional[ProcessingJob]:
        for job in self._jobs.values():
            if job.is_active:
                return job
        return None

    def _prune_locked(self) -> None:
        finished = sorted(
            (j for j in self._jobs.values() if not j.is_active),
            key=lambda j: j.started_at,
        )
        for job in finished[: max(0, len(finished) - MAX_FINISHED_JOBS)]:
            del self._jobs[job.id]
