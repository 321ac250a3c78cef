"""Map local file paths to public URLs."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote

from mediatree.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mediatree.config import SourceMapping

_SEPARATORS_RE = re.compile("|".join(re.escape(s) for s in {os.sep, os.altsep or os.sep}))

# Reserved characters left as-is; "?", "#", "%" and spaces get encoded.
_URL_SAFE = "/;:@&=+$,!*'()[]"


class PathMapping:
    """Ordered ``resolved local root -> URL prefix`` table.

    The first root that is a string prefix of a path wins.
    """

    def __init__(self, roots: Iterable[tuple[str, str]]) -> None:
        self._map: dict[str, str] = {}
        for local, url in roots:
            self._map.setdefault(local, url)

    @classmethod
    def from_sources(cls, sources: Iterable[SourceMapping]) -> PathMapping:
        """Resolve every ``local`` to its real path.

        Raises
        ------
        ConfigError
            When a local root does not exist.
        """
        roots: list[tuple[str, str]] = []
        for source in sources:
            try:
                local = str(Path(source.local).resolve(strict=True))
            except OSError as exc:
                raise ConfigError(f"source root {source.local!r} is not accessible: {exc}") from exc
            roots.append((local, source.url))
        return cls(roots)

    @property
    def locals(self) -> list[str]:
        return list(self._map)

    def map(self, path: str) -> str | None:
        """Return the public URL for *path*, or ``None`` if no root contains it."""
        for local, url in self._map.items():
            if path.startswith(local):
                rest = _SEPARATORS_RE.sub("/", path[len(local):])
                return url + quote(rest, safe=_URL_SAFE)
        return None
