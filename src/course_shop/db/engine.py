"""
Database engine and session management
"""
import logging
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .base import Base

logger = logging.getLogger(__name__)


def _describe_url(url: str) -> str:
    """Database URL without credentials, for logging"""
    if "@" in url:
        scheme = url.split("://", 1)[0]
        return f"{scheme}://***@{url.split('@', 1)[1]}"
    return url


def create_database_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine for the configured database

    PostgreSQL gets a pre-pinged connection pool; SQLite (dev and tests) gets
    a single shared connection for in-memory URLs and foreign keys switched on.
    """
    if database_url.startswith("postgresql"):
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            pool_recycle=900,
            pool_timeout=30,
            connect_args={"connect_timeout": 10, "application_name": "course_shop"},
        )
    elif database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    else:
        engine = create_engine(database_url, pool_pre_ping=True)

    logger.info(f"Database engine created for {_describe_url(database_url)}")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine):
    """Create all tables that do not exist yet"""
    # Import models so they register on the metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session bound to the app's engine"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
