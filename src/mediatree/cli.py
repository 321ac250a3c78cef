"""Mediatree CLI entry point."""

from __future__ import annotations

import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from mediatree import __version__
from mediatree.errors import SetupError

if TYPE_CHECKING:
    from mediatree.config import Config
    from mediatree.updater import UpdateResult

_CONFIG_ARGUMENT = click.argument(
    "config_path",
    metavar="[CONFIG]",
    required=False,
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    root = logging.getLogger("mediatree")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


def _load(config_path: Path | None) -> Config:
    from mediatree.config import load_config

    try:
        return load_config(config_path)
    except SetupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


class ProgressLine:
    """``Updating: i/n`` status line, overwritten in place on stdout."""

    label = "Updating"

    def __init__(self) -> None:
        self._width = 0

    def __call__(self, done: int, total: int) -> None:
        text = f"{self.label}: {done}/{total}"
        self._width = len(text)
        click.echo(f"{text}\r", nl=False)

    def finish(self) -> None:
        click.echo(" " * self._width + "\r", nl=False)
        click.echo(f"{self.label}: done")


@click.group()
@click.version_option(version=__version__, prog_name="mediatree")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Mediatree - mirror music folders into SQLite and export a track list."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _print_summary(result: UpdateResult) -> None:
    click.echo(f"Created:  {result.dirs_created} dirs, {result.files_created} files")
    click.echo(f"Deleted:  {result.dirs_deleted} dirs, {result.files_deleted} files")
    click.echo(f"Updated:  {result.updated}")
    click.echo(f"Failed:   {result.failed}")
    if result.orphan_nodes_removed or result.orphan_media_removed:
        click.echo(
            f"Orphans:  {result.orphan_nodes_removed} nodes, "
            f"{result.orphan_media_removed} media"
        )
    click.echo(
        f"Exported: {result.tracks} tracks, {result.albums} albums, {result.artists} artists"
    )
    if result.warnings:
        click.echo("")
        for warn in result.warnings:
            click.echo(f"  [warn] {warn}")


@main.command()
@_CONFIG_ARGUMENT
@click.option("--no-export", is_flag=True, help="Update the database only, skip the JSON export.")
@click.pass_context
def update(ctx: click.Context, config_path: Path | None, *, no_export: bool) -> None:
    """Scan the configured sources, refresh tags, and write the JSON export.

    CONFIG defaults to ./config.yaml.  Files whose tags cannot be read are
    reported and retried on the next run; they do not fail the command.
    """
    from mediatree.updater import run_update

    config = _load(config_path)
    quiet = ctx.obj["quiet"]
    progress = None if quiet else ProgressLine()

    try:
        result = run_update(config, progress=progress, export=not no_export)
    except SetupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except sqlite3.Error as exc:
        click.echo(f"Error: update aborted, no changes were saved: {exc}", err=True)
        sys.exit(1)
    except OSError as exc:
        click.echo(f"Error: cannot write export: {exc}", err=True)
        sys.exit(1)

    if progress is not None:
        progress.finish()
    if not quiet:
        _print_summary(result)


@main.command("export")
@_CONFIG_ARGUMENT
def export_cmd(config_path: Path | None) -> None:
    """Rewrite the JSON export from the database without scanning."""
    from mediatree.updater import rebuild_export

    config = _load(config_path)
    try:
        result = rebuild_export(config)
    except SetupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except OSError as exc:
        click.echo(f"Error: cannot write export: {exc}", err=True)
        sys.exit(1)
    click.echo(
        f"Wrote {result.export_path}: {result.tracks} tracks, "
        f"{result.albums} albums, {result.artists} artists"
    )


@main.command()
@_CONFIG_ARGUMENT
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def status(config_path: Path | None, *, output_json: bool) -> None:
    """Show database statistics."""
    from mediatree.updater import store_status

    config = _load(config_path)
    if not config.database.exists():
        click.echo("Error: database not found. Run `mediatree update` first.", err=True)
        sys.exit(1)
    try:
        counts, last_update = store_status(config)
    except SetupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_json:
        data = {
            "database": str(config.database),
            "last_update": last_update,
            "directories": counts.directories,
            "files": counts.files,
            "media": counts.media,
            "pending": counts.pending,
        }
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table

    console = Console()
    console.print(Panel(
        f"Last update: {last_update}",
        title=f"Mediatree v{__version__}",
        border_style="blue",
    ))

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("metric", style="cyan")
    table.add_column("value", justify="right")
    table.add_row("Directories", str(counts.directories))
    table.add_row("Files", str(counts.files))
    table.add_row("Media records", str(counts.media))
    table.add_row("Pending retry", str(counts.pending))
    console.print(table)
