"""
Database connection and session management.
Engines are built from Settings at process start (API lifespan or script
entry point); nothing here connects at import time.
Supports PostgreSQL and SQLite backends.
"""

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from typing import Generator, Optional
from fastapi import Request
import logging
import os

from market_intel.core.config import Settings
from market_intel.db.models import Base

logger = logging.getLogger(__name__)

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))


def _resolve_sqlite_url(database_url: str) -> str:
    """Resolve ./relative SQLite paths against the backend directory."""
    db_path = database_url.replace("sqlite:///", "", 1)
    if db_path.startswith("./"):
        return f"sqlite:///{os.path.join(_BACKEND_DIR, db_path[2:])}"
    return database_url


def create_db_engine(settings: Settings) -> Engine:
    """Build the engine for settings.database_url."""
    if settings.database_url.startswith("sqlite"):
        # SQLite: StaticPool for thread safety (and shared in-memory DBs)
        engine = create_engine(
            _resolve_sqlite_url(settings.database_url),
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # PostgreSQL: pooled connections
    engine = create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_recycle=settings.database_pool_recycle,
        pool_pre_ping=settings.database_pool_pre_ping,
        pool_timeout=30,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000",
        },
    )

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_conn, connection_record):
        """Tag connections so batch jobs are visible in pg_stat_activity."""
        cursor = dbapi_conn.cursor()
        cursor.execute("SET application_name = 'market-intel'")
        cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create tables that do not exist yet."""
    logger.info("Initializing database schema...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema initialized")


def get_db(request: Request) -> Generator[Optional[Session], None, None]:
    """
    Dependency injection for a database session.
    Yields None when the database cannot be reached so routes can answer 503.
    """
    session_factory = request.app.state.session_factory
    db = session_factory()
    try:
        try:
            db.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning(f"Database unavailable: {e}")
            yield None
            return
        yield db
    finally:
        db.close()
