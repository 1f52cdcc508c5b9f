"""
PostgreSQL connection helper.
Provides get_db() and transaction() for use by services.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from flask import current_app, has_app_context
from psycopg2.extras import DictCursor

logger = logging.getLogger(__name__)


def _resolve_dsn(dsn: Optional[str]) -> str:
    if dsn:
        return dsn
    if has_app_context():
        return current_app.config["SETTINGS"].database_url
    raise RuntimeError("No database URL given and no application context available.")


def get_db(dsn: Optional[str] = None):
    """
    Returns a new psycopg2 connection with dictionary-based row access.

    Usage:
        conn = get_db()
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.execute(...)
        finally:
            conn.close()

    Args:
        dsn (str, optional): Connection string. Defaults to the running
            app's configured DATABASE_URL.

    Returns:
        psycopg2.extensions.connection: A connection object with DictCursor factory.

    Raises:
        psycopg2.Error: If connection fails.
    """
    try:
        conn = psycopg2.connect(_resolve_dsn(dsn))
        conn.cursor_factory = DictCursor
        return conn
    except psycopg2.Error:
        logger.exception("Error connecting to database")
        raise


@contextmanager
def transaction(dsn: Optional[str] = None) -> Iterator[DictCursor]:
    """
    Yield a cursor inside a single transaction.

    Commits when the block exits normally, rolls back when it raises, and
    always closes the connection.
    """
    conn = get_db(dsn)
    try:
        with conn:
            with conn.cursor() as cur:
                yield cur
    finally:
        conn.close()
