"""
Database configuration and connection management.

Builds the SQLAlchemy engine from settings and provides the per-request
session dependency.
"""

import time
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .logging_config import get_logger
from .models import Base

logger = get_logger(__name__)

QUERY_LOGGING_THRESHOLD_MS = 100


def get_engine_kwargs(db_url: str) -> dict:
    """
    Get database-specific engine arguments.

    Args:
        db_url: Database connection URL

    Returns:
        Keyword arguments for ``create_engine``
    """
    if db_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    }


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores ON DELETE clauses unless foreign keys are switched on."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(Engine, "before_cursor_execute")
def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Track query start time."""
    conn.info.setdefault("query_start_time", []).append(time.time())


@event.listens_for(Engine, "after_cursor_execute")
def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log slow queries."""
    total_time_ms = (time.time() - conn.info["query_start_time"].pop()) * 1000

    if total_time_ms > QUERY_LOGGING_THRESHOLD_MS:
        logger.warning(
            "Slow query detected",
            query_time_ms=round(total_time_ms, 2),
            statement=statement[:200],
        )


engine = create_engine(settings.DATABASE_URL, **get_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables on application startup. Existing tables are left
    untouched.
    """
    logger.info("Initializing database tables")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database initialized")


def check_database(db: Session) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        return db.execute(text("SELECT 1")).scalar() == 1
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False


def get_db() -> Generator[Session, None, None]:
    """
    Get database session for dependency injection.

    Services commit their own units of work; anything left uncommitted when
    the handler raises is rolled back.

    Yields:
        SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
