"""Export builder: fold media records into the files/albums/artists graph.

The JSON document written for the web player looks like::

    {
      "files":   [{"name", "url", "artist_id", "album_id", "track", "genre", "length"}],
      "albums":  [{"name", "artists": [artist ids], "titles": [file ids]}],
      "artists": [{"name", "albums": [album ids], "titles": [file ids]}]
    }

Ids are list positions assigned in first-seen order, so the output depends
on the order records are added.  :func:`build_export` adds them by file id.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mediatree.infrastructure.store import TreeStore
    from mediatree.models import MediaRecord
    from mediatree.url_mapping import PathMapping


class ExportGraph:
    """Append-only artist/album/track graph for one export."""

    def __init__(self, mapping: PathMapping) -> None:
        self._mapping = mapping
        self.files: list[dict[str, Any]] = []
        self.albums: list[dict[str, Any]] = []
        self.artists: list[dict[str, Any]] = []
        # Keys compare exactly: no case folding, None distinct from "".
        self._album_ids: dict[str | None, int] = {}
        self._artist_ids: dict[str | None, int] = {}

    def add(self, record: MediaRecord, fullpath: str) -> int:
        """Add one track; returns its file id."""
        album_id = self._album_id(record.album)
        artist_id = self._artist_id(record.artist)
        file_id = len(self.files)
        self.files.append({
            "name": record.title,
            "url": self._mapping.map(fullpath),
            "artist_id": artist_id,
            "album_id": album_id,
            "track": record.track,
            "genre": record.genre,
            "length": record.length,
        })

        album = self.albums[album_id]
        if artist_id not in album["artists"]:
            album["artists"].append(artist_id)
        album["titles"].append(file_id)

        artist = self.artists[artist_id]
        if album_id not in artist["albums"]:
            artist["albums"].append(album_id)
        artist["titles"].append(file_id)
        return file_id

    def result(self) -> dict[str, list[dict[str, Any]]]:
        return {"files": self.files, "albums": self.albums, "artists": self.artists}

    def _album_id(self, name: str | None) -> int:
        album_id = self._album_ids.get(name)
        if album_id is None:
            album_id = len(self.albums)
            self.albums.append({"name": name, "artists": [], "titles": []})
            self._album_ids[name] = album_id
        return album_id

    def _artist_id(self, name: str | None) -> int:
        artist_id = self._artist_ids.get(name)
        if artist_id is None:
            artist_id = len(self.artists)
            self.artists.append({"name": name, "albums": [], "titles": []})
            self._artist_ids[name] = artist_id
        return artist_id


def build_export(store: TreeStore, mapping: PathMapping) -> ExportGraph:
    """Build the graph from every media record in *store*."""
    graph = ExportGraph(mapping)
    for record, fullpath in store.iter_media():
        graph.add(record, fullpath)
    return graph


def write_export(graph: ExportGraph, path: Path) -> None:
    """Write *graph* as JSON to *path*, replacing it atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(graph.result(), fh, ensure_ascii=False)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
