"""Drains pending articles through the filter and summary model calls.

Each drain fetches pending articles in batches (most recent first) and runs
them on a thread pool whose width bounds the number of simultaneous model
calls. A batch is fully joined before the next one is fetched.

Cancellation is checked once per article before it is dispatched. Model calls
already in flight are allowed to finish; the gateway's transport timeout is
the only bound on them.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Set

from .classify.llm import DEFAULT_REJECT_MARKER, parse_filter_reply
from .models import CONFIG_PROMPT_FILTER, CONFIG_PROMPT_SUMMARY, Article, ArticleStatus, utcnow
from .store import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
DEFAULT_PROGRESS_INTERVAL = 10


class ChatGateway(Protocol):
    def chat(self, system_prompt: str, user_content: str) -> str: ...

    def get_prompt(self, key: str) -> str: ...


class ProcessingCancelled(Exception):
    """The drain stopped because its cancel event was set."""

    def __init__(self, stats: "ProcessingStats"):
        super().__init__(
            f"processing cancelled after {stats.completed} articles "
            f"(succeeded={stats.succeeded}, failed={stats.failed})"
        )
        self.stats = stats


@dataclass(frozen=True)
class ProgressSnapshot:
    processed: int
    total: int
    succeeded: int
    failed: int


@dataclass
class ProcessingStats:
    """Counters shared by the workers of one drain."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    def record(self, ok: bool) -> ProgressSnapshot:
        with self._lock:
            if ok:
                self.succeeded += 1
            else:
                self.failed += 1
            return self._snapshot()

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            processed=self.succeeded + self.failed,
            total=self.total,
            succeeded=self.succeeded,
            failed=self.failed,
        )


ProgressCallback = Callable[[ProgressSnapshot], None]


def article_prompt_input(article: Article) -> str:
    return f"{article.title}\n\n{article.content}"


class ArticleProcessor:
    def __init__(
        self,
        store: ContentStore,
        gateway: ChatGateway,
        concurrency: int = DEFAULT_CONCURRENCY,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
        reject_marker: str = DEFAULT_REJECT_MARKER,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.store = store
        self.gateway = gateway
        self.concurrency = concurrency
        self.progress_interval = max(1, progress_interval)
        self.reject_marker = reject_marker

    def process_article(self, article: Article) -> ArticleStatus:
        """Filter, then summarize one article and persist its terminal status.

        Gateway errors propagate and leave the article pending.
        """
        text = article_prompt_input(article)

        filter_prompt = self.gateway.get_prompt(CONFIG_PROMPT_FILTER)
        reply = self.gateway.chat(filter_prompt, text)
        verdict = parse_filter_reply(reply, self.reject_marker)

        if not verdict.worth:
            article.status = ArticleStatus.FILTERED
            article.summary = verdict.reason
        else:
            summary_prompt = self.gateway.get_prompt(CONFIG_PROMPT_SUMMARY)
            article.summary = self.gateway.chat(summary_prompt, text)
            article.status = ArticleStatus.PROCESSED

        article.processed_at = utcnow()
        if not self.store.complete_article(article):
            logger.info("Article %s was already finalized, result discarded", article.id)
        return article.status

    def _emit(self, snapshot: ProgressSnapshot, on_progress: Optional[ProgressCallback]) -> None:
        logger.info(
            "Progress: %d/%d (succeeded: %d, failed: %d)",
            snapshot.processed,
            snapshot.total,
            snapshot.succeeded,
            snapshot.failed,
        )
        if on_progress is not None:
            try:
                on_progress(snapshot)
            except Exception:
                logger.exception("Progress callback failed")

    def _run_one(
        self,
        article: Article,
        stats: ProcessingStats,
        limiter: threading.BoundedSemaphore,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        try:
            try:
                self.process_article(article)
                ok = True
            except Exception as e:
                logger.warning("Failed to process article %s [%s]: %s", article.id, article.title[:80], e)
                ok = False
            snapshot = stats.record(ok)
            if snapshot.processed % self.progress_interval == 0:
                self._emit(snapshot, on_progress)
        finally:
            limiter.release()

    def process_pending(
        self,
        batch_size: int = 10,
        cancel_event: Optional[threading.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ProcessingStats:
        """Process pending articles until none are left or ``cancel_event`` is set.

        Raises:
            ProcessingCancelled: when cancelled; carries the counters so far.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        total = self.store.count_articles(ArticleStatus.PENDING)
        stats = ProcessingStats(total=total)
        if total == 0:
            logger.info("No pending articles")
            return stats

        logger.info("Processing %d pending articles (batch=%d, concurrency=%d)", total, batch_size, self.concurrency)

        limiter = threading.BoundedSemaphore(self.concurrency)
        # Articles attempted by this drain; failures stay pending for the next one
        attempted: Set[int] = set()

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="processor") as pool:
            while True:
                batch = self.store.list_pending(limit=batch_size, exclude_ids=attempted)
                if not batch:
                    break

                futures = []
                for article in batch:
                    if cancel_event is not None and cancel_event.is_set():
                        wait(futures)
                        snapshot = stats.snapshot()
                        logger.info(
                            "Processing cancelled: succeeded %d, failed %d",
                            snapshot.succeeded,
                            snapshot.failed,
                        )
                        raise ProcessingCancelled(stats)

                    limiter.acquire()
                    attempted.add(article.id)
                    futures.append(pool.submit(self._run_one, article, stats, limiter, on_progress))

                wait(futures)

        snapshot = stats.snapshot()
        self._emit(snapshot, on_progress)
        logger.info(
            "Processing done: total %d, succeeded %d, failed %d",
            snapshot.processed,
            snapshot.succeeded,
            snapshot.failed,
        )
        return stats
