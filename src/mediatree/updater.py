"""Update orchestrator: reconcile, refresh, sweep and export in one run."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from mediatree import __version__
from mediatree.errors import StoreConnectionError
from mediatree.export import build_export, write_export
from mediatree.fs_view import virtual_root
from mediatree.infrastructure.db import connect, open_db
from mediatree.infrastructure.store import SqliteTreeStore
from mediatree.reconciler import Reconciler
from mediatree.refresh import RefreshEngine
from mediatree.sweeper import sweep_orphans
from mediatree.tags import read_tags
from mediatree.url_mapping import PathMapping

if TYPE_CHECKING:
    from pathlib import Path

    from mediatree.config import Config
    from mediatree.infrastructure.store import StoreCounts
    from mediatree.refresh import ProgressCallback, TagReader

logger = logging.getLogger(__name__)


@dataclass
class UpdateResult:
    """Summary of an update run."""

    files_created: int = 0
    files_deleted: int = 0
    dirs_created: int = 0
    dirs_deleted: int = 0
    tasks: int = 0
    updated: int = 0
    failed: int = 0
    orphan_nodes_removed: int = 0
    orphan_media_removed: int = 0
    tracks: int = 0
    albums: int = 0
    artists: int = 0
    export_path: Path | None = None
    warnings: list[str] = field(default_factory=list)


def open_store(config: Config) -> SqliteTreeStore:
    """Open the configured database.

    Raises
    ------
    StoreConnectionError
        When the database cannot be opened or initialised.
    """
    return SqliteTreeStore(connect(config.database))


def run_update(
    config: Config,
    *,
    reader: TagReader | None = None,
    progress: ProgressCallback | None = None,
    export: bool = True,
) -> UpdateResult:
    """Synchronise the store with the configured sources and write the export.

    Everything between reading the tree and building the export happens in a
    single transaction: an unexpected error rolls back every change of the
    run.  Per-file tag failures are recorded and do not abort the run.  The
    JSON document is written only after the commit.

    *reader* defaults to :func:`mediatree.tags.read_tags`.

    Raises
    ------
    ConfigError
        When a source root is missing or the roots cannot be merged.
    StoreConnectionError
        When the database cannot be opened.
    """
    mapping = PathMapping.from_sources(config.sources)
    live_root = virtual_root(mapping.locals)
    store = open_store(config)

    result = UpdateResult()
    try:
        with store.transaction():
            reconciler = Reconciler(store)
            tasks = reconciler.sync(live_root, store.root())
            logger.info("%d files queued for tag extraction", len(tasks))

            refresh = RefreshEngine(store, reader or read_tags).run(tasks, progress)
            sweep = sweep_orphans(store)
            graph = build_export(store, mapping)

            now = datetime.now(tz=timezone.utc).isoformat()
            store.set_meta("last_update_at", now)
            store.set_meta("mediatree_version", __version__)
    finally:
        store.close()

    stats = reconciler.stats
    result.files_created = stats.files_created
    result.files_deleted = stats.files_deleted
    result.dirs_created = stats.dirs_created
    result.dirs_deleted = stats.dirs_deleted
    result.tasks = len(tasks)
    result.updated = refresh.updated
    result.failed = refresh.failed
    result.orphan_nodes_removed = sweep.nodes_removed
    result.orphan_media_removed = sweep.media_removed
    result.tracks = len(graph.files)
    result.albums = len(graph.albums)
    result.artists = len(graph.artists)
    result.warnings.extend(f"{f.path}: {f.reason}" for f in live_root.failures)

    if export:
        write_export(graph, config.output_json)
        result.export_path = config.output_json
    logger.info(
        "Update finished: %d updated, %d failed, %d tracks exported",
        result.updated,
        result.failed,
        result.tracks,
    )
    return result


def rebuild_export(config: Config) -> UpdateResult:
    """Write the export from the stored media table without scanning."""
    mapping = PathMapping.from_sources(config.sources)
    store = open_store(config)
    try:
        graph = build_export(store, mapping)
    finally:
        store.close()
    write_export(graph, config.output_json)
    return UpdateResult(
        tracks=len(graph.files),
        albums=len(graph.albums),
        artists=len(graph.artists),
        export_path=config.output_json,
    )


def store_status(config: Config) -> tuple[StoreCounts, str]:
    """Return row counts and the last update time (``"never"`` if none).

    The database is opened without bootstrapping, so nothing is written.

    Raises
    ------
    StoreConnectionError
        When the database is missing or cannot be read.
    """
    if not config.database.exists():
        raise StoreConnectionError(f"database not found: {config.database}")
    try:
        store = SqliteTreeStore(open_db(config.database))
    except sqlite3.Error as exc:
        raise StoreConnectionError(f"cannot open database {config.database}: {exc}") from exc
    try:
        counts = store.counts()
        last_update = store.get_meta("last_update_at", "never") or "never"
    except sqlite3.Error as exc:
        raise StoreConnectionError(f"cannot read database {config.database}: {exc}") from exc
    finally:
        store.close()
    return counts, last_update
