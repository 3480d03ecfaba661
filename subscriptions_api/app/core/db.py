"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), running statements in an all‑or‑nothing
transaction (``transaction``), probing the database at startup
(``wait_for_database``) and applying migrations (``init_db``).

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .config import settings

logger = logging.getLogger(__name__)

# Append new migrations with an incremented version number.  Applied
# migrations must never be edited.
MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS subscriptions (
            id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            service_name TEXT NOT NULL,
            price INTEGER NOT NULL,
            is_deleted INTEGER NOT NULL DEFAULT 0,
            start_time TEXT NOT NULL,
            end_time TEXT
        );
        """,
    ),
    (
        2,
        """
        -- Total cost queries always filter by owner and service name.
        CREATE INDEX IF NOT EXISTS idx_subscriptions_owner_service
            ON subscriptions(owner_id, service_name);
        """,
    ),
]


def get_database_path(database_url: Optional[str] = None) -> str:
    """Compute the path to the SQLite database file.

    If the configured path is absolute (or the in‑memory marker), use
    it directly.  Otherwise resolve it relative to the project root.
    """
    db_url = database_url or settings.database_url
    if db_url == ":memory:" or os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / db_url).resolve())


def get_connection(database_url: Optional[str] = None) -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name.  The busy timeout bounds how long a statement waits on a
    database locked by another writer.
    """
    conn = sqlite3.connect(get_database_path(database_url), timeout=settings.db_timeout)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_cursor(database_url: Optional[str] = None) -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection(database_url)
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


@contextmanager
def transaction(database_url: Optional[str] = None) -> Iterator[sqlite3.Cursor]:
    """Yield a cursor whose statements are committed or rolled back together.

    Any exception raised inside the block rolls the transaction back
    and is re‑raised to the caller.
    """
    conn = get_connection(database_url)
    try:
        cursor = conn.cursor()
        cursor.execute("BEGIN")
        try:
            yield cursor
        except BaseException:
            conn.rollback()
            raise
        conn.commit()
    finally:
        conn.close()


def wait_for_database(
    attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    database_url: Optional[str] = None,
) -> None:
    """Block until the database accepts a trivial query.

    Tries ``attempts`` times, sleeping ``backoff * n`` seconds after
    the ``n``‑th failure.  The last error is re‑raised once the
    attempts are exhausted.
    """
    attempts = attempts if attempts is not None else settings.db_connect_attempts
    backoff = backoff if backoff is not None else settings.db_connect_backoff
    for attempt in range(1, attempts + 1):
        try:
            conn = get_connection(database_url)
            try:
                conn.execute("SELECT 1")
            finally:
                conn.close()
            return
        except sqlite3.Error as exc:
            if attempt == attempts:
                logger.error("Database unavailable after %d attempts: %s", attempts, exc)
                raise
            delay = backoff * attempt
            logger.warning(
                "Database connection attempt %d/%d failed: %s; retrying in %.1fs",
                attempt,
                attempts,
                exc,
                delay,
            )
            time.sleep(delay)


def current_version(database_url: Optional[str] = None) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    with get_cursor(database_url) as cursor:
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        row = cursor.execute("SELECT MAX(version) AS version FROM migrations").fetchone()
        return row["version"] if row and row["version"] is not None else 0


def init_db(database_url: Optional[str] = None) -> int:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version and applies any newer entries of
    ``MIGRATIONS``.  Returns the schema version after migrating.
    """
    with get_cursor(database_url) as cursor:
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        row = cursor.execute("SELECT MAX(version) AS version FROM migrations").fetchone()
        version = row["version"] if row and row["version"] is not None else 0

        for migration_version, sql in MIGRATIONS:
            if migration_version > version:
                logger.info("Applying migration %d", migration_version)
                cursor.executescript(sql)
                cursor.execute("INSERT INTO migrations (version) VALUES (?)", (migration_version,))
                version = migration_version

    return version
