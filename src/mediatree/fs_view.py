"""Filesystem view: lazy directory listings and the merged multi-root tree.

Two kinds of directory sources share the :class:`DirectorySource` protocol:

* :class:`FsDirectory` lists a physical directory.
* :class:`MergedRoot` is a virtual directory that exposes only the path
  segments leading to the configured source roots, so several roots
  (``/srv/music``, ``/home/me/music``) appear under one tree.
"""

from __future__ import annotations

import logging
import os
import re
import stat
from dataclasses import dataclass
from pathlib import PurePath
from typing import TYPE_CHECKING, Protocol

from mediatree.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

# Companion files that never carry audio tags, plus the reserved build artifact.
EXCLUDE_FILES = re.compile(
    r"(?:^Makefile$)"
    r"|(?:\.(?:db|jpg|jpeg|png|gif|bmp|txt|lrc|doc|ini|pdf|abc|mid|flv|webm|aac|mp4"
    r"|m3u|m3u8|pls|cue|srt|nfo|log)$)",
    re.IGNORECASE,
)


def is_excluded(name: str) -> bool:
    """Return True if a file called *name* is skipped by the scanner."""
    return EXCLUDE_FILES.search(name) is not None


@dataclass(frozen=True)
class FsFile:
    """A live regular file."""

    name: str
    path: str
    mtime: int


@dataclass(frozen=True)
class ReadFailure:
    """A filesystem entry that could not be read."""

    path: str
    reason: str


class DirectorySource(Protocol):
    """A directory as seen by the reconciler."""

    name: str
    path: str
    failures: list[ReadFailure]  # shared by every source of one tree

    @property
    def readable(self) -> bool: ...

    def directories(self) -> Sequence[DirectorySource]: ...

    def files(self) -> Sequence[FsFile]: ...


class FsDirectory:
    """A physical directory, listed once on first access.

    Hidden entries are skipped.  Entries are ``lstat``-ed, so symbolic links
    are neither followed nor mirrored.
    """

    def __init__(
        self,
        path: str,
        name: str,
        failures: list[ReadFailure] | None = None,
    ) -> None:
        self.path = path
        self.name = name
        self.failures: list[ReadFailure] = failures if failures is not None else []
        self._readable = True
        self._directories: list[FsDirectory] | None = None
        self._files: list[FsFile] | None = None

    def __repr__(self) -> str:
        return f"FsDirectory({self.path!r})"

    @property
    def readable(self) -> bool:
        self._ensure_read()
        return self._readable

    def directories(self) -> list[FsDirectory]:
        self._ensure_read()
        assert self._directories is not None
        return self._directories

    def files(self) -> list[FsFile]:
        self._ensure_read()
        assert self._files is not None
        return self._files

    def _ensure_read(self) -> None:
        if self._directories is None:
            self._read()

    def _read(self) -> None:
        self._directories = []
        self._files = []
        try:
            with os.scandir(self.path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            self._readable = False
            logger.warning("Cannot list %s: %s", self.path, exc)
            self.failures.append(ReadFailure(self.path, str(exc)))
            return

        for entry in entries:
            if entry.name.startswith("."):
                continue
            try:
                st = entry.stat(follow_symlinks=False)
            except OSError as exc:
                logger.warning("Skipping %s: %s", entry.path, exc)
                self.failures.append(ReadFailure(entry.path, str(exc)))
                continue
            if stat.S_ISDIR(st.st_mode):
                self._directories.append(FsDirectory(entry.path, entry.name, self.failures))
            elif stat.S_ISREG(st.st_mode) and not is_excluded(entry.name):
                self._files.append(FsFile(entry.name, entry.path, int(st.st_mtime)))


class MergedRoot:
    """Virtual directory leading to one or more configured source roots.

    *sources* are the remaining path segments below *path* for each root.
    Roots are grouped by their first segment in the given order.  When one
    root of a group ends at that segment, the segment is listed as a plain
    :class:`FsDirectory` and deeper roots of the same group are covered by it.
    Missing physical directories are skipped.
    """

    def __init__(
        self,
        path: str,
        sources: Iterable[tuple[str, ...]],
        name: str = "",
        failures: list[ReadFailure] | None = None,
    ) -> None:
        self.path = path
        self.name = name
        self.failures: list[ReadFailure] = failures if failures is not None else []
        self._sources = [tuple(s) for s in sources if s]
        self._directories: list[DirectorySource] | None = None

    def __repr__(self) -> str:
        return f"MergedRoot({self.path!r}, {self._sources!r})"

    @property
    def readable(self) -> bool:
        return True

    def directories(self) -> list[DirectorySource]:
        if self._directories is None:
            self._directories = self._read()
        return self._directories

    def files(self) -> list[FsFile]:
        return []

    def _read(self) -> list[DirectorySource]:
        splits: dict[str, list[tuple[str, ...]]] = {}
        for parts in self._sources:
            splits.setdefault(parts[0], []).append(parts[1:])

        result: list[DirectorySource] = []
        for first, rests in splits.items():
            path = os.path.join(self.path, first)
            if not os.path.isdir(path):
                logger.debug("Source directory %s does not exist, skipped", path)
                continue
            if any(not rest for rest in rests):
                result.append(FsDirectory(path, first, self.failures))
            else:
                result.append(MergedRoot(path, rests, first, self.failures))
        return result


def virtual_root(paths: Iterable[str]) -> DirectorySource:
    """Build the top-level source for absolute root *paths*.

    The returned source stands for the filesystem anchor (``/``) and matches
    the stored root node.

    Raises
    ------
    ConfigError
        When a path is relative or the paths live under different anchors.
    """
    split: list[tuple[str, ...]] = []
    for p in paths:
        pure = PurePath(p)
        if not pure.is_absolute():
            raise ConfigError(f"source root {p!r} must be absolute")
        split.append(pure.parts)
    if not split:
        raise ConfigError("no source roots configured")

    anchors = {parts[0] for parts in split}
    if len(anchors) > 1:
        raise ConfigError(f"source roots span several filesystem anchors: {sorted(anchors)}")
    anchor = split[0][0]
    rests = [parts[1:] for parts in split]
    if any(not rest for rest in rests):
        return FsDirectory(anchor, "")
    return MergedRoot(anchor, rests, "")
