"""Reconciler: make the stored tree match the live filesystem.

Walks a live :class:`~mediatree.fs_view.DirectorySource` and the stored
directory of the same name in parallel, one directory level at a time:

1. purge stored files missing on disk,
2. purge stored directories missing on disk (descendants cascade),
3. create nodes for new files and queue every new or newer file,
4. create nodes for new directories and recurse.

Purging before creating means a renamed entry is a delete followed by a
create; its metadata is extracted again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mediatree.fs_view import DirectorySource, FsFile
    from mediatree.infrastructure.store import TreeStore
    from mediatree.models import TreeNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateTask:
    """Deferred metadata extraction for one stored file node."""

    node: TreeNode
    file: FsFile


@dataclass
class ReconcileStats:
    """Mutation counters of one reconciliation."""

    files_created: int = 0
    files_deleted: int = 0
    dirs_created: int = 0
    dirs_deleted: int = 0
    unreadable_dirs: int = 0

    @property
    def mutations(self) -> int:
        return self.files_created + self.files_deleted + self.dirs_created + self.dirs_deleted


class Reconciler:
    """Diffs live directories against stored ones through a :class:`TreeStore`."""

    def __init__(self, store: TreeStore) -> None:
        self.store = store
        self.stats = ReconcileStats()

    def sync(self, live: DirectorySource, stored: TreeNode) -> list[UpdateTask]:
        """Reconcile *stored* (and its subtree) with *live*.

        Returns the update tasks in depth-first order: a directory's own
        files come before the contents of its subdirectories.
        """
        tasks: list[UpdateTask] = []
        self._walk(live, stored, tasks)
        return tasks

    def _walk(self, live: DirectorySource, stored: TreeNode, tasks: list[UpdateTask]) -> None:
        if not live.readable:
            # Unknown contents: leave the stored subtree as it is.
            self.stats.unreadable_dirs += 1
            return

        store = self.store
        live_files = {f.name: f for f in live.files()}
        live_dirs = {d.name: d for d in live.directories()}

        # Purge before create.
        for node in store.children(stored.id, directory=False):
            if node.name not in live_files:
                logger.debug("Purge file %s", node.fullpath)
                store.delete_node(node.id)
                self.stats.files_deleted += 1
        for node in store.children(stored.id, directory=True):
            if node.name not in live_dirs:
                logger.debug("Purge directory %s", node.fullpath)
                store.delete_node(node.id)
                self.stats.dirs_deleted += 1

        stored_files = {n.name: n for n in store.children(stored.id, directory=False)}
        for name, fs_file in live_files.items():
            node = stored_files.get(name)
            if node is None:
                logger.debug("New file %s", fs_file.path)
                if fs_file.mtime <= 0:
                    # Indistinguishable from the retry sentinel: a failed read is not retried.
                    logger.warning(
                        "%s has mtime %d; it will not be retried if its tags cannot be read",
                        fs_file.path,
                        fs_file.mtime,
                    )
                node = store.create_node(stored.id, name, fs_file.path, 0, directory=False)
                self.stats.files_created += 1
                tasks.append(UpdateTask(node, fs_file))
            elif node.mtime < fs_file.mtime:
                tasks.append(UpdateTask(node, fs_file))

        stored_dirs = {n.name: n for n in store.children(stored.id, directory=True)}
        for name, fs_dir in live_dirs.items():
            node = stored_dirs.get(name)
            if node is None:
                logger.debug("New directory %s", fs_dir.path)
                node = store.create_node(stored.id, name, fs_dir.path, 0, directory=True)
                self.stats.dirs_created += 1
            self._walk(fs_dir, node, tasks)
