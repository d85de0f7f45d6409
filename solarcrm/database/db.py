"""Engine and session factory.

Production runs on the Supabase PostgreSQL instance; local runs fall back to
SQLite when connectivity is optional. Per-request identity (the RLS claims) is
applied by ``solarcrm.auth.session_bridge.DatabaseClient``, not here.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from solarcrm.core.config import get_config

logger = logging.getLogger(__name__)

config = get_config()
DATABASE_URL = config.DATABASE_URL
FALLBACK_SQLITE_URL = "sqlite:///./solarcrm.db"


def _scheme(database_url: str) -> str:
    return database_url.split("://", 1)[0]


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # Timeline and document rows rely on ON DELETE CASCADE.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # Request handlers run in a threadpool; sessions never cross threads.
        sqlite_engine = create_engine(
            database_url,
            echo=config.DEBUG,
            connect_args={"check_same_thread": False},
        )
        event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine
    return create_engine(
        database_url,
        echo=config.DEBUG,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=10,
        max_overflow=20,
        connect_args={"application_name": config.APP_NAME},
    )


def _configure_engine(database_url: str) -> None:
    global DATABASE_URL, engine, SessionLocal
    DATABASE_URL = database_url
    engine = _build_engine(database_url)
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


_configure_engine(DATABASE_URL)


def get_active_database_url() -> str:
    """Return the currently bound database URL (after fallback, if any)."""
    return DATABASE_URL


def new_session() -> Session:
    return SessionLocal()


def init_schema() -> None:
    """Create all tables on the active engine; migrations own the production schema."""
    from solarcrm.models import Base

    Base.metadata.create_all(bind=engine)


def _ping() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def verify_database_connection() -> bool:
    """Check the database connection, falling back to SQLite when connectivity is optional."""
    try:
        _ping()
        return True
    except SQLAlchemyError as exc:
        if config.DB_CONNECTIVITY_REQUIRED:
            logger.exception(
                "database.connection_failed",
                extra={"event": "database.connection_failed", "scheme": _scheme(DATABASE_URL)},
            )
            return False
        logger.warning(
            "database.connection_failed.optional",
            extra={"event": "database.connection_failed.optional", "scheme": _scheme(DATABASE_URL), "error": str(exc)},
        )
        return _fallback_to_sqlite()


def _fallback_to_sqlite() -> bool:
    if DATABASE_URL.startswith("sqlite"):
        return False

    primary_url = DATABASE_URL
    _configure_engine(FALLBACK_SQLITE_URL)
    try:
        _ping()
    except SQLAlchemyError as exc:
        _configure_engine(primary_url)
        logger.error(
            "database.connection_fallback.failed",
            extra={"event": "database.connection_fallback.failed", "error": str(exc)},
        )
        return False

    logger.warning(
        "database.connection_fallback.sqlite",
        extra={
            "event": "database.connection_fallback.sqlite",
            "from_scheme": _scheme(primary_url),
            "to_scheme": "sqlite",
        },
    )
    return True


def count_step_templates() -> int | None:
    """Number of StepMaster rows, or None when the table is not readable yet."""
    from solarcrm.models import StepMaster

    session = new_session()
    try:
        return session.query(StepMaster).count()
    except SQLAlchemyError:
        return None
    finally:
        session.close()
