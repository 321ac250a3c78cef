"""Tests for mediatree.infrastructure.db: SQLite schema and connection management."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

import pytest

from mediatree.errors import StoreConnectionError
from mediatree.infrastructure.db import (
    SCHEMA_VERSION,
    connect,
    create_schema,
    get_meta,
    open_db,
    set_meta,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestOpenDb:
    """Tests for open_db() connection factory."""

    def test_creates_db_file(self, tmp_path: Path) -> None:
        db_path = tmp_path / "media.db"
        conn = open_db(db_path)
        conn.close()
        assert db_path.exists()

    def test_wal_mode_enabled(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db")
        result = conn.execute("PRAGMA journal_mode").fetchone()
        assert result[0] == "wal"
        conn.close()

    def test_foreign_keys_enabled(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db")
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        conn.close()

    def test_returns_row_factory(self, tmp_path: Path) -> None:
        conn = open_db(tmp_path / "test.db")
        assert conn.row_factory == sqlite3.Row
        conn.close()


class TestCreateSchema:
    """Tests for create_schema(): tables, root node and cascades."""

    @pytest.fixture()
    def conn(self, tmp_path: Path) -> sqlite3.Connection:
        c = open_db(tmp_path / "test.db")
        create_schema(c)
        return c

    def test_all_tables_exist(self, conn: sqlite3.Connection) -> None:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        }
        assert {"filetree", "media", "meta"}.issubset(tables)

    def test_root_node_inserted(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT * FROM filetree WHERE id = 0").fetchone()
        assert row["parent_id"] is None
        assert row["name"] == ""
        assert row["directory"] == 1

    def test_schema_version_recorded(self, conn: sqlite3.Connection) -> None:
        assert get_meta(conn, "schema_version") == SCHEMA_VERSION

    def test_idempotent(self, conn: sqlite3.Connection) -> None:
        create_schema(conn)
        count = conn.execute("SELECT count(*) FROM filetree").fetchone()[0]
        assert count == 1

    def test_directory_flag_checked(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO filetree (parent_id, name, fullpath, mtime, directory) "
                "VALUES (0, 'x', '/x', 0, 2)"
            )

    def test_delete_cascades_to_children_and_media(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            "INSERT INTO filetree (id, parent_id, name, fullpath, mtime, directory) "
            "VALUES (1, 0, 'a', '/a', 0, 1)"
        )
        conn.execute(
            "INSERT INTO filetree (id, parent_id, name, fullpath, mtime, directory) "
            "VALUES (2, 1, 'b', '/a/b', 0, 1)"
        )
        conn.execute(
            "INSERT INTO filetree (id, parent_id, name, fullpath, mtime, directory) "
            "VALUES (3, 2, 's.mp3', '/a/b/s.mp3', 5, 0)"
        )
        conn.execute("INSERT INTO media (file_id, title) VALUES (3, 'S')")
        conn.execute("DELETE FROM filetree WHERE id = 1")
        assert conn.execute("SELECT count(*) FROM filetree").fetchone()[0] == 1
        assert conn.execute("SELECT count(*) FROM media").fetchone()[0] == 0

    def test_media_requires_existing_node(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO media (file_id, title) VALUES (42, 'x')")


class TestConnect:
    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        db_path = tmp_path / "var" / "lib" / "media.db"
        conn = connect(db_path)
        conn.close()
        assert db_path.exists()

    def test_not_a_database(self, tmp_path: Path) -> None:
        db_path = tmp_path / "media.db"
        db_path.write_bytes(b"definitely not sqlite " * 64)
        with pytest.raises(StoreConnectionError):
            connect(db_path)


class TestMeta:
    def test_set_and_get(self, tmp_path: Path) -> None:
        conn = connect(tmp_path / "m.db")
        set_meta(conn, "last_update_at", "2024-01-01")
        set_meta(conn, "last_update_at", "2024-02-02")
        assert get_meta(conn, "last_update_at") == "2024-02-02"
        conn.close()

    def test_default(self, tmp_path: Path) -> None:
        conn = connect(tmp_path / "m.db")
        assert get_meta(conn, "missing") is None
        assert get_meta(conn, "missing", "never") == "never"
        conn.close()
