from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from .config import get_settings


_engine = None


def make_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Pipeline workers share the engine across threads
        connect_args = {"check_same_thread": False}
    return create_engine(database_url, connect_args=connect_args)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = make_engine(get_settings().database_url)
    return _engine


def create_db_and_tables(engine: Optional[Engine] = None) -> None:
    # Import registers the table metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


@contextmanager
def session_context(engine: Optional[Engine] = None) -> Iterator[Session]:
    with Session(engine or get_engine(), expire_on_commit=False) as session:
        yield session
