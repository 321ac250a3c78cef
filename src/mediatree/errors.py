"""Error kinds raised across mediatree.

Setup errors abort a run before any transaction opens.  Extraction errors
are per-file and never escape the refresh engine.
"""

from __future__ import annotations


class MediaTreeError(Exception):
    """Base class for mediatree errors."""


class SetupError(MediaTreeError):
    """Raised when a run cannot start (configuration, database)."""


class ConfigError(SetupError):
    """Raised for a missing, unreadable or invalid configuration."""


class StoreConnectionError(SetupError):
    """Raised when the database cannot be opened or initialised."""


class ExtractionError(MediaTreeError):
    """Raised when tags cannot be read from one audio file."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
