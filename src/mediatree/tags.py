"""Tag reading with mutagen."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mutagen import File as MutagenFile  # type: ignore[attr-defined]
from mutagen import MutagenError

from mediatree.errors import ExtractionError


@dataclass(frozen=True)
class AudioTags:
    """Tag fields of one audio file; ``None`` where the file has no value."""

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    genre: str | None = None
    track: int | None = None
    length: int | None = None  # seconds


def _first(tags: Any, key: str) -> str | None:
    """First non-empty value of an easy tag, or None."""
    if tags is None:
        return None
    try:
        values = tags.get(key)
    except (KeyError, ValueError):
        return None
    if not values:
        return None
    value = values[0] if isinstance(values, list) else values
    text = str(value).strip("\x00")
    return text or None


def _parse_track(value: str | None) -> int | None:
    """``"3"`` and ``"3/12"`` both give 3; anything else gives None."""
    if not value:
        return None
    head = value.split("/", 1)[0].strip()
    try:
        return int(head)
    except ValueError:
        return None


def read_tags(path: str) -> AudioTags:
    """Read title, artist, album, genre, track number and duration from *path*.

    Raises
    ------
    ExtractionError
        When the file cannot be opened, is not a recognised audio format,
        or its tag data is malformed.
    """
    try:
        audio = MutagenFile(path, easy=True)
    except (MutagenError, OSError) as exc:
        raise ExtractionError(path, str(exc)) from exc
    except (ValueError, IndexError, EOFError) as exc:
        # Malformed frames surface as plain errors from some parsers.
        raise ExtractionError(path, f"malformed tag data: {exc}") from exc
    if audio is None:
        raise ExtractionError(path, "unsupported file format")

    length = getattr(audio.info, "length", None)
    return AudioTags(
        title=_first(audio.tags, "title"),
        artist=_first(audio.tags, "artist"),
        album=_first(audio.tags, "album"),
        genre=_first(audio.tags, "genre"),
        track=_parse_track(_first(audio.tags, "tracknumber")),
        length=int(length) if length else None,
    )
