"""Shared fixtures: a file-backed SQLite store and a scriptable model gateway."""

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from newsflow.db import create_db_and_tables, make_engine
from newsflow.models import CONFIG_PROMPT_FILTER, CONFIG_PROMPT_SUMMARY, Article, Feed
from newsflow.store import ContentStore

FILTER_PROMPT = "FILTER-PROMPT"
SUMMARY_PROMPT = "SUMMARY-PROMPT"


@pytest.fixture
def engine(tmp_path):
    """File-backed so worker threads share one database."""
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    create_db_and_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return ContentStore(engine)


@pytest.fixture
def feed(store):
    return store.create_feed(Feed(name="Example", url="https://example.com/feed.xml"))


@pytest.fixture
def make_articles(store, feed):
    """Insert ``n`` pending articles, newest first by title index."""

    def _make(n, prefix="Article"):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        created = []
        for i in range(n):
            article, _ = store.find_or_create_article(
                Article(
                    feed_id=feed.id,
                    title=f"{prefix} {i}",
                    link=f"https://example.com/{prefix.lower()}/{i}",
                    content=f"Body of {prefix.lower()} {i}",
                    pub_date=base - timedelta(hours=i),
                )
            )
            created.append(article)
        return created

    return _make


class FakeGateway:
    """Stands in for ModelGateway; records calls and concurrency."""

    def __init__(self, filter_reply='{"worth": true, "reason": "ok"}', summary="A short summary", delay=0.0):
        self.filter_reply = filter_reply
        self.summary = summary
        self.delay = delay
        self.fail_summary_for = set()
        self.on_call = None
        self.calls = []
        self.active = 0
        self.peak = 0
        self.closed = False
        self._lock = threading.Lock()

    def close(self):
        self.closed = True

    def get_prompt(self, key):
        return {CONFIG_PROMPT_FILTER: FILTER_PROMPT, CONFIG_PROMPT_SUMMARY: SUMMARY_PROMPT}[key]

    def chat(self, system_prompt, user_content):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.calls.append((system_prompt, user_content))
            call_no = len(self.calls)
        try:
            if self.on_call is not None:
                self.on_call(call_no, system_prompt, user_content)
            if self.delay:
                time.sleep(self.delay)
            if self.closed:
                raise RuntimeError("client has been closed")
            if system_prompt == FILTER_PROMPT:
                reply = self.filter_reply
                return reply(user_content) if callable(reply) else reply
            title = user_content.split("\n\n", 1)[0]
            if title in self.fail_summary_for:
                raise RuntimeError(f"summary failed for {title}")
            return f"{self.summary}: {title}"
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def fake_gateway():
    return FakeGateway()
