"""Database session management"""
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import get_settings


def build_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    settings = get_settings()
    url = database_url or settings.database_url
    echo = settings.database_echo if echo is None else echo

    if url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions and threads
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool, echo=echo)
    return create_engine(url, pool_size=10, max_overflow=20, pool_pre_ping=True, echo=echo)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


engine = build_engine()
SessionLocal = build_session_factory(engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables"""
    from database import models  # noqa: F401  registers the tables on Base.metadata
    from database.base import Base

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def get_db_sync(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Session context manager for synchronous code"""
    db = (factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()
