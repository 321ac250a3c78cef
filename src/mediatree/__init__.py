"""Mediatree: mirror music directories into SQLite and export a track graph."""

__version__ = "0.3.0"
