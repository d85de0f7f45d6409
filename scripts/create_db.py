"""Create the configured PostgreSQL database if it does not exist yet."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from urllib.parse import urlparse

import psycopg2
from psycopg2 import sql

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from solarcrm.core.config import get_config
from solarcrm.core.logging_config import configure_logging

logger = logging.getLogger("scripts.create_db")


def create_database() -> None:
    db_url = get_config().DATABASE_URL
    result = urlparse(db_url)
    if not result.scheme.startswith("postgresql"):
        logger.info("create_db.skipped", extra={"event": "create_db.skipped", "scheme": result.scheme})
        return

    database = result.path[1:]
    # Connect to the default 'postgres' database to create the target db.
    conn = psycopg2.connect(
        database="postgres",
        user=result.username,
        password=result.password,
        host=result.hostname,
        port=result.port,
    )
    conn.autocommit = True
    try:
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s", (database,))
            if cursor.fetchone():
                logger.info("create_db.exists", extra={"event": "create_db.exists", "database": database})
                return
            cursor.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(database)))
            logger.info("create_db.created", extra={"event": "create_db.created", "database": database})
    finally:
        conn.close()


if __name__ == "__main__":
    configure_logging()
    create_database()
