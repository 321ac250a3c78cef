"""Tests for mediatree.tags: mutagen tag reading."""

from __future__ import annotations

import wave
from typing import TYPE_CHECKING

import pytest

from mediatree.errors import ExtractionError
from mediatree.tags import _parse_track, read_tags

if TYPE_CHECKING:
    from pathlib import Path


class TestParseTrack:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("3", 3), ("03", 3), ("3/12", 3), (" 7 / 9", 7), ("", None), (None, None), ("A1", None)],
    )
    def test_values(self, value: str | None, expected: int | None) -> None:
        assert _parse_track(value) == expected


class TestReadTags:
    def test_unrecognised_file(self, tmp_path: Path) -> None:
        path = tmp_path / "noise.mp3"
        path.write_bytes(b"\x00")
        with pytest.raises(ExtractionError) as exc_info:
            read_tags(str(path))
        assert exc_info.value.path == str(path)
        assert str(path) in str(exc_info.value)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ExtractionError):
            read_tags(str(tmp_path / "gone.mp3"))

    def test_wave_without_tags(self, tmp_path: Path) -> None:
        path = tmp_path / "tone.wav"
        with wave.open(str(path), "wb") as w:
            w.setnchannels(1)
            w.setsampwidth(2)
            w.setframerate(8000)
            w.writeframes(b"\x00\x00" * 8000 * 2)
        tags = read_tags(str(path))
        assert tags.title is None
        assert tags.artist is None
        assert tags.track is None
        assert tags.length == 2
