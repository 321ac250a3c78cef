"""Infrastructure: SQLite connection, schema, and the tree store."""

from mediatree.infrastructure.db import (
    SCHEMA_VERSION,
    connect,
    create_schema,
    get_meta,
    open_db,
    set_meta,
)
from mediatree.infrastructure.store import SqliteTreeStore, StoreCounts, TreeStore

__all__ = [
    "SCHEMA_VERSION",
    "SqliteTreeStore",
    "StoreCounts",
    "TreeStore",
    "connect",
    "create_schema",
    "get_meta",
    "open_db",
    "set_meta",
]
