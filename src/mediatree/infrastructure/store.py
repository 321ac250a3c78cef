"""Tree store: typed access to the ``filetree`` and ``media`` tables.

Domain code (reconciler, refresh engine, sweeper, export) only talks to the
:class:`TreeStore` protocol.  :class:`SqliteTreeStore` is the production
implementation; tests substitute an in-memory fake.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from mediatree.infrastructure.db import get_meta, set_meta
from mediatree.models import ROOT_ID, MediaRecord, TreeNode

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreCounts:
    """Row counts used by ``mediatree status``."""

    directories: int
    files: int
    media: int
    pending: int  # file nodes with mtime 0 (new or failed)


class TreeStore(Protocol):
    """Operations the synchronisation engine needs from a store."""

    def root(self) -> TreeNode: ...

    def children(self, parent_id: int, *, directory: bool) -> list[TreeNode]: ...

    def create_node(
        self,
        parent_id: int,
        name: str,
        fullpath: str,
        mtime: int,
        *,
        directory: bool,
    ) -> TreeNode: ...

    def delete_node(self, node_id: int) -> None: ...

    def set_mtime(self, node_id: int, mtime: int) -> None: ...

    def save_media(self, record: MediaRecord) -> None: ...

    def delete_media(self, file_id: int) -> bool: ...

    def delete_orphan_nodes(self) -> int: ...

    def delete_orphan_media(self) -> int: ...

    def iter_media(self) -> Iterator[tuple[MediaRecord, str]]: ...


def _row_to_node(row: sqlite3.Row) -> TreeNode:
    return TreeNode(
        id=row["id"],
        parent_id=row["parent_id"],
        name=row["name"],
        fullpath=row["fullpath"],
        mtime=row["mtime"],
        directory=bool(row["directory"]),
    )


def _row_to_media(row: sqlite3.Row) -> MediaRecord:
    return MediaRecord(
        file_id=row["file_id"],
        title=row["title"],
        artist=row["artist"],
        album=row["album"],
        genre=row["genre"],
        track=row["track"],
        length=row["length"],
    )


class SqliteTreeStore:
    """:class:`TreeStore` backed by a SQLite connection.

    Mutating methods never commit; wrap a run in :meth:`transaction`.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[SqliteTreeStore]:
        """Run the enclosed block as one atomic unit of work.

        Commits on normal exit; rolls back and re-raises on any exception.
        """
        if self._conn.in_transaction:
            raise RuntimeError("transaction already open")
        self._conn.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self._conn.rollback()
            logger.debug("Transaction rolled back")
            raise
        self._conn.commit()

    # -- nodes ---------------------------------------------------------------

    def node(self, node_id: int) -> TreeNode | None:
        row = self._conn.execute("SELECT * FROM filetree WHERE id = ?", (node_id,)).fetchone()
        return _row_to_node(row) if row is not None else None

    def root(self) -> TreeNode:
        node = self.node(ROOT_ID)
        if node is None:
            raise LookupError("root node missing from filetree")
        return node

    def children(self, parent_id: int, *, directory: bool) -> list[TreeNode]:
        rows = self._conn.execute(
            "SELECT * FROM filetree WHERE parent_id = ? AND directory = ? ORDER BY id",
            (parent_id, int(directory)),
        ).fetchall()
        return [_row_to_node(r) for r in rows]

    def create_node(
        self,
        parent_id: int,
        name: str,
        fullpath: str,
        mtime: int,
        *,
        directory: bool,
    ) -> TreeNode:
        cur = self._conn.execute(
            "INSERT INTO filetree (parent_id, name, fullpath, mtime, directory) "
            "VALUES (?, ?, ?, ?, ?)",
            (parent_id, name, fullpath, mtime, int(directory)),
        )
        node_id = cur.lastrowid
        assert node_id is not None
        return TreeNode(
            id=node_id,
            parent_id=parent_id,
            name=name,
            fullpath=fullpath,
            mtime=mtime,
            directory=directory,
        )

    def delete_node(self, node_id: int) -> None:
        """Delete a node; descendants and media go with it (FK cascade)."""
        if node_id == ROOT_ID:
            raise ValueError("the root node cannot be deleted")
        self._conn.execute("DELETE FROM filetree WHERE id = ?", (node_id,))

    def set_mtime(self, node_id: int, mtime: int) -> None:
        self._conn.execute("UPDATE filetree SET mtime = ? WHERE id = ?", (mtime, node_id))

    # -- media ---------------------------------------------------------------

    def save_media(self, record: MediaRecord) -> None:
        self._conn.execute(
            "INSERT INTO media (file_id, title, artist, album, genre, track, length) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(file_id) DO UPDATE SET title = excluded.title, "
            "artist = excluded.artist, album = excluded.album, genre = excluded.genre, "
            "track = excluded.track, length = excluded.length",
            (
                record.file_id,
                record.title,
                record.artist,
                record.album,
                record.genre,
                record.track,
                record.length,
            ),
        )

    def delete_media(self, file_id: int) -> bool:
        cur = self._conn.execute("DELETE FROM media WHERE file_id = ?", (file_id,))
        return cur.rowcount > 0

    def iter_media(self) -> Iterator[tuple[MediaRecord, str]]:
        """Yield every media record with its owning file's full path, by file id."""
        rows = self._conn.execute(
            "SELECT m.*, f.fullpath AS fullpath FROM media m "
            "JOIN filetree f ON f.id = m.file_id ORDER BY m.file_id"
        ).fetchall()
        for row in rows:
            yield _row_to_media(row), row["fullpath"]

    # -- orphans -------------------------------------------------------------

    def delete_orphan_nodes(self) -> int:
        """Delete non-root nodes whose parent is missing. Returns the row count."""
        cur = self._conn.execute(
            "DELETE FROM filetree WHERE parent_id IS NOT NULL AND NOT EXISTS "
            "(SELECT 1 FROM filetree p WHERE p.id = filetree.parent_id)"
        )
        return cur.rowcount

    def delete_orphan_media(self) -> int:
        """Delete media rows whose file node is missing. Returns the row count."""
        cur = self._conn.execute(
            "DELETE FROM media WHERE NOT EXISTS "
            "(SELECT 1 FROM filetree f WHERE f.id = media.file_id)"
        )
        return cur.rowcount

    # -- bookkeeping ---------------------------------------------------------

    def counts(self) -> StoreCounts:
        conn = self._conn
        directories: int = conn.execute(
            "SELECT count(*) FROM filetree WHERE directory = 1 AND id != ?", (ROOT_ID,)
        ).fetchone()[0]
        files: int = conn.execute(
            "SELECT count(*) FROM filetree WHERE directory = 0"
        ).fetchone()[0]
        media: int = conn.execute("SELECT count(*) FROM media").fetchone()[0]
        pending: int = conn.execute(
            "SELECT count(*) FROM filetree WHERE directory = 0 AND mtime = 0"
        ).fetchone()[0]
        return StoreCounts(directories=directories, files=files, media=media, pending=pending)

    def get_meta(self, key: str, default: str | None = None) -> str | None:
        return get_meta(self._conn, key, default)

    def set_meta(self, key: str, value: str) -> None:
        set_meta(self._conn, key, value)
