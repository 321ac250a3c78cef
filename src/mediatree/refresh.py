"""Metadata refresh engine: extract tags for queued files.

Each task touches only its own node and media row.  A file whose tags
cannot be read keeps its node, loses any stale media row, and gets
``mtime = 0`` so the next run tries it again.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mediatree.errors import ExtractionError
from mediatree.models import MediaRecord
from mediatree.tags import read_tags

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from mediatree.infrastructure.store import TreeStore
    from mediatree.reconciler import UpdateTask
    from mediatree.tags import AudioTags

    TagReader = Callable[[str], AudioTags]
    ProgressCallback = Callable[[int, int], None]

logger = logging.getLogger(__name__)


class TaskOutcome(enum.Enum):
    UPDATED = "updated"
    FAILED = "failed"


@dataclass
class RefreshStats:
    updated: int = 0
    failed: int = 0


def display_title(name: str) -> str:
    """Title shown for files without a title tag."""
    return f"<{name}>"


class RefreshEngine:
    """Runs :class:`UpdateTask` objects against a store."""

    def __init__(self, store: TreeStore, reader: TagReader = read_tags) -> None:
        self.store = store
        self.reader = reader

    def execute(self, task: UpdateTask) -> TaskOutcome:
        """Extract tags for one file and persist the result.

        Only :class:`ExtractionError` is handled here; store errors propagate
        so the surrounding transaction is rolled back.
        """
        node, fs_file = task.node, task.file
        try:
            tags = self.reader(fs_file.path)
        except ExtractionError as exc:
            if self.store.delete_media(node.id):
                logger.debug("Dropped stale metadata for %s", fs_file.path)
            self.store.set_mtime(node.id, 0)
            logger.warning("Cannot read %s: %s", fs_file.path, exc.reason)
            return TaskOutcome.FAILED

        self.store.save_media(
            MediaRecord(
                file_id=node.id,
                title=tags.title or display_title(fs_file.name),
                artist=tags.artist,
                album=tags.album,
                genre=tags.genre,
                track=tags.track,
                length=tags.length,
            )
        )
        self.store.set_mtime(node.id, fs_file.mtime)
        return TaskOutcome.UPDATED

    def run(
        self,
        tasks: Sequence[UpdateTask],
        progress: ProgressCallback | None = None,
    ) -> RefreshStats:
        """Execute *tasks* in order, reporting ``(done, total)`` to *progress*."""
        stats = RefreshStats()
        total = len(tasks)
        if progress is not None:
            progress(0, total)
        for i, task in enumerate(tasks, start=1):
            if self.execute(task) is TaskOutcome.UPDATED:
                stats.updated += 1
            else:
                stats.failed += 1
            if progress is not None:
                progress(i, total)
        return stats
