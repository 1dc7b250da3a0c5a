"""SQLite schema creation and migration for the draft recovery database."""

import sqlite3

from loguru import logger

SCHEMA_VERSION = 1

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS drafts (
    key TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    size INTEGER NOT NULL,
    saved_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables."""
    conn.executescript(_SCHEMA_SQL)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    value = get_metadata(conn, "schema_version")
    return int(value) if value is not None else None


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Bring the recovery database to SCHEMA_VERSION.

    Tables are created with IF NOT EXISTS, so an older database is upgraded by
    re-running the schema. A database written by a newer version is left alone.
    """
    version = get_schema_version(conn)
    if version == SCHEMA_VERSION:
        return
    if version is not None and version > SCHEMA_VERSION:
        logger.warning(
            "Recovery database has schema version {}, newer than {}; using it as is",
            version,
            SCHEMA_VERSION,
        )
        return
    if version is not None:
        logger.info("Upgrading recovery database from schema version {}", version)
    create_schema(conn)


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    try:
        row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    except sqlite3.OperationalError:
        return None
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
        (key, value),
    )
