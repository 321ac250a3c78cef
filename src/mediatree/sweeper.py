"""Orphan sweeper: remove rows whose owner no longer exists.

Cascading deletes normally keep the store consistent.  This pass catches
rows orphaned some other way (foreign keys disabled, external edits).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mediatree.infrastructure.store import TreeStore

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    nodes_removed: int = 0
    media_removed: int = 0
    passes: int = 0


def sweep_orphans(store: TreeStore) -> SweepStats:
    """Delete orphaned nodes, then orphaned media, until none remain.

    Each node pass only sees the current orphans, so chains (a subtree whose
    top lost its parent) take one pass per level.
    """
    stats = SweepStats()

    while True:
        removed = store.delete_orphan_nodes()
        stats.passes += 1
        if not removed:
            break
        stats.nodes_removed += removed

    while True:
        removed = store.delete_orphan_media()
        stats.passes += 1
        if not removed:
            break
        stats.media_removed += removed

    if stats.nodes_removed or stats.media_removed:
        logger.info(
            "Removed %d orphaned nodes and %d orphaned media records",
            stats.nodes_removed,
            stats.media_removed,
        )
    return stats
