"""SQLite database layer: connection management, schema, meta helpers."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

from mediatree.errors import StoreConnectionError
from mediatree.models import ROOT_ID

if TYPE_CHECKING:
    from pathlib import Path

# Schema version: increment on breaking changes
SCHEMA_VERSION = "1"

_SCHEMA_SQL = """\
-- Mirrored filesystem entries
CREATE TABLE IF NOT EXISTS filetree (
    id        INTEGER PRIMARY KEY,
    parent_id INTEGER REFERENCES filetree(id) ON DELETE CASCADE,
    name      TEXT NOT NULL,
    fullpath  TEXT NOT NULL,
    mtime     INTEGER NOT NULL,
    directory INTEGER NOT NULL CHECK(directory IN (0, 1))
);

-- Tag metadata, one row per file node
CREATE TABLE IF NOT EXISTS media (
    file_id INTEGER PRIMARY KEY REFERENCES filetree(id) ON DELETE CASCADE,
    title   TEXT,
    artist  TEXT,
    album   TEXT,
    genre   TEXT,
    track   INTEGER,
    length  INTEGER
);

-- Store metadata
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_filetree_parent ON filetree(parent_id);
"""


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) a SQLite database with proper PRAGMAs.

    Sets WAL journal mode (persistent per-file) and enables foreign keys
    (per-connection, required on every open, cascades depend on it).

    Returns a connection with ``sqlite3.Row`` row factory.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and the root node if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    conn.executescript(_SCHEMA_SQL)
    conn.execute(
        "INSERT OR IGNORE INTO filetree (id, parent_id, name, fullpath, mtime, directory) "
        "VALUES (?, NULL, '', '', 0, 1)",
        (ROOT_ID,),
    )
    set_meta(conn, "schema_version", SCHEMA_VERSION)
    conn.commit()


def connect(db_path: Path) -> sqlite3.Connection:
    """Open *db_path* and bootstrap the schema.

    Raises
    ------
    StoreConnectionError
        When the file cannot be created or is not a usable SQLite database.
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = open_db(db_path)
    except (OSError, sqlite3.Error) as exc:
        raise StoreConnectionError(f"cannot open database {db_path}: {exc}") from exc
    try:
        create_schema(conn)
    except sqlite3.Error as exc:
        conn.close()
        raise StoreConnectionError(f"cannot initialise database {db_path}: {exc}") from exc
    return conn


def get_meta(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    """Read a value from the ``meta`` table.

    Returns *default* (``None``) if the key doesn't exist.
    """
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    if row is None:
        return default
    return str(row[0])


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or update a key in the ``meta`` table.

    Does not commit; callers own the transaction.
    """
    conn.execute(
        "INSERT INTO meta (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )
