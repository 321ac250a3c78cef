"""Rows of the tree store as plain data classes."""

from __future__ import annotations

from dataclasses import dataclass

# Identity of the synthetic root node.
ROOT_ID = 0


@dataclass(frozen=True)
class TreeNode:
    """One mirrored filesystem entry.

    ``mtime`` is integer epoch seconds; ``0`` means the file was never
    processed successfully (or the node is a directory).
    """

    id: int
    parent_id: int | None
    name: str
    fullpath: str
    mtime: int
    directory: bool


@dataclass
class MediaRecord:
    """Tag metadata owned by exactly one file node."""

    file_id: int
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    genre: str | None = None
    track: int | None = None
    length: int | None = None  # seconds
