"""Database package for SiteAuditor"""

from database.base import Base
from database.session import SessionLocal, build_engine, build_session_factory, engine, get_db_sync, init_db

__all__ = ["Base", "SessionLocal", "build_engine", "build_session_factory", "engine", "get_db_sync", "init_db"]
