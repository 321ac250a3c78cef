"""Shared test fixtures for mediatree."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from mediatree.errors import ExtractionError
from mediatree.infrastructure.db import connect
from mediatree.infrastructure.store import SqliteTreeStore
from mediatree.models import ROOT_ID, MediaRecord, TreeNode
from mediatree.tags import AudioTags

if TYPE_CHECKING:
    from pathlib import Path


class MemoryTreeStore:
    """In-memory ``TreeStore`` with the same cascade semantics as SQLite."""

    def __init__(self) -> None:
        self.nodes: dict[int, TreeNode] = {
            ROOT_ID: TreeNode(ROOT_ID, None, "", "", 0, True),
        }
        self.media: dict[int, MediaRecord] = {}
        self.writes = 0
        self._next_id = 1

    def root(self) -> TreeNode:
        return self.nodes[ROOT_ID]

    def children(self, parent_id: int, *, directory: bool) -> list[TreeNode]:
        return [
            n for n in self.nodes.values()
            if n.parent_id == parent_id and n.directory == directory
        ]

    def create_node(
        self,
        parent_id: int,
        name: str,
        fullpath: str,
        mtime: int,
        *,
        directory: bool,
    ) -> TreeNode:
        node = TreeNode(self._next_id, parent_id, name, fullpath, mtime, directory)
        self.nodes[node.id] = node
        self._next_id += 1
        self.writes += 1
        return node

    def delete_node(self, node_id: int) -> None:
        self.writes += 1
        stack = [node_id]
        while stack:
            current = stack.pop()
            self.nodes.pop(current, None)
            self.media.pop(current, None)
            stack.extend(n.id for n in self.nodes.values() if n.parent_id == current)

    def set_mtime(self, node_id: int, mtime: int) -> None:
        self.writes += 1
        self.nodes[node_id] = replace(self.nodes[node_id], mtime=mtime)

    def save_media(self, record: MediaRecord) -> None:
        self.writes += 1
        self.media[record.file_id] = record

    def delete_media(self, file_id: int) -> bool:
        self.writes += 1
        return self.media.pop(file_id, None) is not None

    def delete_orphan_nodes(self) -> int:
        dead = [
            n.id for n in self.nodes.values()
            if n.parent_id is not None and n.parent_id not in self.nodes
        ]
        for node_id in dead:
            del self.nodes[node_id]
        return len(dead)

    def delete_orphan_media(self) -> int:
        dead = [file_id for file_id in self.media if file_id not in self.nodes]
        for file_id in dead:
            del self.media[file_id]
        return len(dead)

    def iter_media(self) -> Iterator[tuple[MediaRecord, str]]:
        for file_id in sorted(self.media):
            yield self.media[file_id], self.nodes[file_id].fullpath

    # -- helpers for assertions ---------------------------------------------

    def find(self, *names: str) -> TreeNode | None:
        """Walk from the root by child names."""
        node = self.root()
        for name in names:
            matches = [n for n in self.nodes.values() if n.parent_id == node.id and n.name == name]
            if not matches:
                return None
            node = matches[0]
        return node


def shape(store: MemoryTreeStore | SqliteTreeStore, node: TreeNode | None = None) -> dict:
    """Nested ``{name: subtree or None}`` view of the stored tree."""
    node = node or store.root()
    result: dict = {}
    for d in store.children(node.id, directory=True):
        result[d.name] = shape(store, d)
    for f in store.children(node.id, directory=False):
        result[f.name] = None
    return result


def set_mtime(path: Path, mtime: int) -> None:
    os.utime(path, (mtime, mtime))


class FakeTagReader:
    """Tag reader returning canned tags per file name.

    Names listed in ``failing`` raise :class:`ExtractionError`.
    """

    def __init__(self, tags: dict[str, AudioTags] | None = None) -> None:
        self.tags = tags or {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def __call__(self, path: str) -> AudioTags:
        self.calls.append(path)
        name = os.path.basename(path)
        if name in self.failing:
            raise ExtractionError(path, "bad frame")
        return self.tags.get(name, AudioTags())


@pytest.fixture(autouse=True)
def _reset_mediatree_logger() -> Iterator[None]:
    """Undo handler changes made by the CLI so caplog keeps working."""
    logger = logging.getLogger("mediatree")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture()
def memory_store() -> MemoryTreeStore:
    return MemoryTreeStore()


@pytest.fixture()
def sqlite_store(tmp_path: Path) -> Iterator[SqliteTreeStore]:
    store = SqliteTreeStore(connect(tmp_path / "db" / "media.db"))
    yield store
    store.close()


@pytest.fixture()
def tag_reader() -> FakeTagReader:
    return FakeTagReader()


@pytest.fixture()
def make_file() -> Callable[..., Path]:
    """Create a file with a given mtime, creating parent directories."""

    def _make(path: Path, mtime: int = 100, content: bytes = b"\x00") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        set_mtime(path, mtime)
        return path

    return _make


@pytest.fixture()
def tree_shape() -> Callable[..., dict]:
    return shape


@pytest.fixture()
def stored_media() -> Callable[..., MediaRecord | None]:
    """Look up one media record through ``iter_media``."""

    def _lookup(store: MemoryTreeStore | SqliteTreeStore, file_id: int) -> MediaRecord | None:
        for record, _ in store.iter_media():
            if record.file_id == file_id:
                return record
        return None

    return _lookup
