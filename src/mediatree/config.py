"""YAML configuration: database location, source roots, export path."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mediatree.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("config.yaml")

_SQLITE_URL_PREFIX = "sqlite://"


@dataclass(frozen=True)
class SourceMapping:
    """One configured music root and the public URL it is served under."""

    local: str
    url: str


@dataclass
class Config:
    """Resolved configuration for one run."""

    database: Path
    output_json: Path
    sources: list[SourceMapping] = field(default_factory=list)


def _parse_database(value: str, base_dir: Path) -> Path:
    """Accept ``sqlite:///abs/path``, ``sqlite://rel/path`` or a plain path."""
    if value.startswith(_SQLITE_URL_PREFIX):
        value = value[len(_SQLITE_URL_PREFIX):]
        # sqlite:///abs → "/abs"; sqlite://rel → "rel"
    elif "://" in value:
        scheme = value.split("://", 1)[0]
        raise ConfigError(f"unsupported database scheme '{scheme}' (only sqlite)")
    if not value:
        raise ConfigError("'database' must name a file")
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _require_str(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{where}: '{key}' must be a non-empty string")
    return value


def parse_config(data: Any, base_dir: Path) -> Config:
    """Validate a decoded YAML document and build a :class:`Config`.

    Relative paths resolve against *base_dir* (the config file's directory).
    """
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping")

    database = _parse_database(_require_str(data, "database", "config"), base_dir)

    output = Path(_require_str(data, "output-json", "config")).expanduser()
    if not output.is_absolute():
        output = base_dir / output

    raw_sources = data.get("sources")
    if not isinstance(raw_sources, list) or not raw_sources:
        raise ConfigError("config: 'sources' must be a non-empty list")
    sources: list[SourceMapping] = []
    for i, entry in enumerate(raw_sources):
        if not isinstance(entry, dict):
            raise ConfigError(f"sources[{i}]: expected a mapping with 'local' and 'url'")
        local = _require_str(entry, "local", f"sources[{i}]")
        url = _require_str(entry, "url", f"sources[{i}]")
        local_path = Path(local).expanduser()
        if not local_path.is_absolute():
            local_path = base_dir / local_path
        sources.append(SourceMapping(local=str(local_path), url=url))

    return Config(database=database, output_json=output, sources=sources)


def load_config(path: Path | None = None) -> Config:
    """Read and validate the YAML configuration at *path*.

    Defaults to ``config.yaml`` in the working directory.

    Raises
    ------
    ConfigError
        When the file is missing, is not valid YAML, or lacks required keys.
    """
    config_path = path or DEFAULT_CONFIG_PATH
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read {config_path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
    return parse_config(data, config_path.resolve().parent)
