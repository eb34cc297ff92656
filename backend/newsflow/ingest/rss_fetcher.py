from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import feedparser
import httpx

from ..models import Article, Feed, as_utc, utcnow
from ..store import ContentStore

logger = logging.getLogger(__name__)


UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) " "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/15.1 Safari/605.1.15"


class FeedFetchError(Exception):
    """The feed could not be downloaded or parsed."""

    def __init__(self, feed_url: str, message: str):
        super().__init__(f"{feed_url}: {message}")
        self.feed_url = feed_url


class IngestionCancelled(Exception):
    pass


def _entry_datetime(entry) -> Optional[datetime]:
    """Best-effort datetime extraction.
    Order: *_parsed struct_time → RFC822 strings → ISO8601 strings.
    Returns an aware UTC datetime; naive strings are read as UTC.
    """
    for attr in ("published_parsed", "updated_parsed", "created_parsed"):
        val = entry.get(attr)
        if val:
            try:
                # feedparser normalizes *_parsed to UTC
                return datetime(*val[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                pass
    for attr in ("published", "updated", "created"):
        s = entry.get(attr)
        if not s:
            continue
        try:
            dt = parsedate_to_datetime(s)
        except (TypeError, ValueError):
            dt = None
        if dt is None:
            try:
                dt = datetime.fromisoformat(s)
            except ValueError:
                continue
        return as_utc(dt)
    return None


def _entry_content(entry) -> str:
    summary = entry.get("summary")
    if summary:
        return summary
    for block in entry.get("content") or []:
        value = block.get("value")
        if value:
            return value
    return ""


def entry_to_article(entry, feed_id: Optional[int]) -> Optional[Article]:
    link = (entry.get("link") or "").strip()
    if not link:
        return None
    return Article(
        feed_id=feed_id,
        title=(entry.get("title") or "").strip(),
        link=link,
        content=_entry_content(entry),
        # A missing or unparseable date never rejects the item
        pub_date=_entry_datetime(entry) or utcnow(),
    )


class FeedIngestor:
    """Downloads feeds and stores their unseen items as pending articles."""

    def __init__(
        self,
        store: ContentStore,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.store = store
        self._timeout = timeout
        self._transport = transport

    def _download(self, url: str) -> bytes:
        try:
            with httpx.Client(
                headers={"User-Agent": UA},
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                r = client.get(url)
                r.raise_for_status()
                return r.content
        except httpx.HTTPError as e:
            raise FeedFetchError(url, str(e)) from e

    def parse_feed(self, url: str):
        parsed = feedparser.parse(self._download(url))
        bozo = getattr(parsed, "bozo", 0)
        if not parsed.entries and (bozo or not parsed.get("version")):
            raise FeedFetchError(url, f"unparseable feed: {getattr(parsed, 'bozo_exception', 'unknown format')}")
        if bozo:
            logger.warning("feedparser bozo for %s: %s", url, getattr(parsed, "bozo_exception", ""))
        return parsed

    def fetch_feed(self, feed: Feed, cancel_event: Optional[threading.Event] = None) -> int:
        """Fetch one feed; returns the number of newly stored articles."""
        if cancel_event is not None and cancel_event.is_set():
            raise IngestionCancelled(feed.url)

        parsed = self.parse_feed(feed.url)
        count = 0
        for entry in parsed.entries:
            if cancel_event is not None and cancel_event.is_set():
                raise IngestionCancelled(feed.url)
            article = entry_to_article(entry, feed.id)
            if article is None:
                continue
            _, created = self.store.find_or_create_article(article)
            if created:
                count += 1

        logger.info("Fetched %s: %d entries, %d new", feed.url, len(parsed.entries), count)
        return count

    def fetch_all_enabled(self, cancel_event: Optional[threading.Event] = None) -> int:
        """Fetch every enabled feed in turn. A failing feed does not stop the others."""
        total = 0
        for feed in self.store.list_feeds(enabled=True):
            try:
                total += self.fetch_feed(feed, cancel_event)
            except IngestionCancelled:
                logger.info("Feed fetch cancelled at %s", feed.url)
                raise
            except Exception:
                logger.exception("Failed to fetch feed %s", feed.url)
        return total
