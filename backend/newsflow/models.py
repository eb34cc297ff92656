from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Aware UTC timestamp, the convention for every datetime column."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored or parsed datetime to aware UTC.

    Naive values are taken to be UTC already; some SQLite drivers hand them
    back without tzinfo.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ArticleStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FILTERED = "filtered"

    @property
    def is_terminal(self) -> bool:
        return self is not ArticleStatus.PENDING


class Feed(SQLModel, table=True):
    __tablename__ = "feeds"

    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    url: str = Field(index=True, unique=True)
    enabled: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Article(SQLModel, table=True):
    __tablename__ = "articles"

    id: Optional[int] = Field(default=None, primary_key=True)
    feed_id: Optional[int] = Field(default=None, foreign_key="feeds.id", index=True)

    title: str = ""
    link: str = Field(index=True, unique=True)
    content: str = ""
    pub_date: datetime = Field(default_factory=utcnow, index=True)

    status: ArticleStatus = Field(default=ArticleStatus.PENDING, index=True)
    # Summary when processed, the model's short reason when filtered
    summary: str = ""
    processed_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utcnow)


class ConfigEntry(SQLModel, table=True):
    __tablename__ = "config"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(index=True, unique=True)
    value: str = ""
    updated_at: datetime = Field(default_factory=utcnow)


# Provider configuration keys
CONFIG_LLM_PROVIDER = "llm_provider"
CONFIG_LLM_API_URL = "llm_api_url"
CONFIG_LLM_API_KEY = "llm_api_key"
CONFIG_LLM_MODEL = "llm_model"
CONFIG_PROMPT_FILTER = "prompt_filter"
CONFIG_PROMPT_SUMMARY = "prompt_summary"


DEFAULT_CONFIG = {
    CONFIG_LLM_PROVIDER: "openai",
    CONFIG_LLM_API_URL: "https://api.openai.com/v1",
    CONFIG_LLM_MODEL: "gpt-4o-mini",
    CONFIG_PROMPT_FILTER: (
        "你是一个新闻筛选助手。请判断以下文章是否值得阅读。\n"
        '返回JSON格式:{"worth": true/false, "reason": "简短说明原因"}\n'
        "只有重要的科技新闻、行业动态才值得阅读,广告、招聘信息、无意义内容不值得。"
    ),
    CONFIG_PROMPT_SUMMARY: (
        "请用中文总结以下文章的核心内容,要求:\n"
        "1. 控制在200字以内\n"
        "2. 突出关键信息\n"
        "3. 语言简洁易懂"
    ),
}
