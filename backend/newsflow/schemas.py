from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict

from .models import ArticleStatus, as_utc

# Rows may come back naive from SQLite; the API always emits UTC offsets
UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]


class FeedIn(BaseModel):
    name: str
    url: str
    enabled: bool = True


class FeedOut(BaseModel):
    id: int
    name: str
    url: str
    enabled: bool
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = ConfigDict(from_attributes=True)


class ArticleOut(BaseModel):
    id: int
    feed_id: Optional[int]
    title: str
    link: str
    content: str
    pub_date: UTCDatetime
    status: ArticleStatus
    summary: str
    processed_at: Optional[UTCDatetime]
    created_at: UTCDatetime

    model_config = ConfigDict(from_attributes=True)


class ArticlePage(BaseModel):
    data: List[ArticleOut]
    total: int
    page: int


class SystemStatus(BaseModel):
    total_articles: int = 0
    pending_articles: int = 0
    processed_articles: int = 0
    filtered_articles: int = 0

    total_feeds: int = 0
    enabled_feeds: int = 0

    next_fetch_time: Optional[datetime] = None
    next_process_time: Optional[datetime] = None
