import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from ..deps import get_ingestor, get_store, require_admin
from ..ingest.rss_fetcher import FeedFetchError, FeedIngestor
from ..models import Feed
from ..schemas import FeedIn, FeedOut
from ..store import ContentStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/feeds", response_model=List[FeedOut])
def list_feeds(store: ContentStore = Depends(get_store)):
    return store.list_feeds()


@router.post("/feeds", response_model=FeedOut, dependencies=[Depends(require_admin)])
def create_feed(payload: FeedIn, store: ContentStore = Depends(get_store)):
    try:
        return store.create_feed(Feed(name=payload.name, url=payload.url, enabled=payload.enabled))
    except IntegrityError:
        raise HTTPException(status_code=409, detail="feed already exists")


@router.delete("/feeds/{feed_id}", dependencies=[Depends(require_admin)])
def delete_feed(feed_id: int, store: ContentStore = Depends(get_store)):
    if not store.delete_feed(feed_id):
        raise HTTPException(status_code=404, detail="feed not found")
    return {"message": "deleted"}


@router.post("/feeds/fetch", dependencies=[Depends(require_admin)])
def fetch_all_feeds(background_tasks: BackgroundTasks, ingestor: FeedIngestor = Depends(get_ingestor)):
    background_tasks.add_task(ingestor.fetch_all_enabled)
    return {"message": "fetch started"}


@router.post("/feeds/{feed_id}/fetch", dependencies=[Depends(require_admin)])
def fetch_feed(
    feed_id: int,
    store: ContentStore = Depends(get_store),
    ingestor: FeedIngestor = Depends(get_ingestor),
):
    feed = store.get_feed(feed_id)
    if feed is None:
        raise HTTPException(status_code=404, detail="feed not found")
    try:
        count = ingestor.fetch_feed(feed)
    except FeedFetchError as e:
        logger.warning("Manual fetch failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"new_articles": count}
