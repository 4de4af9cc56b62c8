"""Command-line interface for Folio.

This module defines the CLI commands using Click framework.
It provides commands for creating new sites, building sites, and running the development server.

Commands:
- new: Scaffold a new Folio site.
- build: Build the site into the output directory.
- serve: Run development server with live reload.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .errors import ConfigurationError, FolioError, RenderError

STARTER_CONFIG = """\
site_name: {name}

nav:
  - Home: index.md

theme:
  name: default

markdown_extensions:
  - admonition
  - tables
  - toc:
      permalink: true
  - pymdownx.highlight
  - pymdownx.superfences

plugins:
  - search
"""

STARTER_INDEX = """\
# {name}

Welcome to your new documentation site.

!!! tip "Next steps"
    Edit `docs/index.md`, add pages to the `nav` in `folio.yaml`
    and run `folio serve` to preview your changes.
"""


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _report_failure(exc: FolioError, input_root: Path) -> None:
    """Print a fatal build error to stderr."""
    if isinstance(exc, ConfigurationError):
        location, message = exc.path, exc.message
    elif isinstance(exc, RenderError):
        location, message = exc.source_path, exc.message
    else:
        location, message = None, str(exc)
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if location is not None:
        location = Path(location)
        # Relative locations are already site paths
        if location.is_absolute() and location.is_relative_to(input_root):
            location = location.relative_to(input_root)
        click.echo(click.style(f"  File: {location}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {message}", fg="white"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio documentation site builder."""


@cli.command()
@click.argument("directory")
def new(directory: str):
    """Scaffold a new Folio site."""
    target = Path(directory).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Folio site created at {target}")


@cli.command()
@click.option(
    "--input",
    "input_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory containing folio.yaml",
)
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (defaults to site_dir from the configuration)",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Rendering threads")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def build(input_dir: Path, output_dir: Path | None, workers: int | None, verbose: bool):
    """Build the site into the output directory."""
    _configure_logging(verbose)
    from .build import build_site

    input_root = input_dir.resolve()
    try:
        report = build_site(input_root, output_dir, workers=workers)
    except FolioError as exc:
        _report_failure(exc, input_root)
        raise SystemExit(1) from None

    click.echo(f"Built {len(report.pages)} pages into {report.output_dir}")
    for path in report.succeeded:
        click.echo(f"  {path}")
    if report.orphans:
        click.echo(f"{len(report.orphans)} pages are not included in the navigation:")
        for path in report.orphans:
            click.echo(f"  {path}")
    if not report.ok:
        click.echo(
            click.style(f"Skipped {len(report.skipped)} pages:", fg="yellow", bold=True),
            err=True,
        )
        for failure in report.skipped:
            click.echo(click.style(f"  {failure.path}: {failure.reason}", fg="yellow"), err=True)
        raise SystemExit(1)


@cli.command()
@click.option(
    "--input",
    "input_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Directory containing folio.yaml",
)
@click.option("--port", type=int, default=8000, show_default=True, help="Port to run the dev server")
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (defaults to port + 1)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def serve(input_dir: Path, port: int, ws_port: int | None, verbose: bool):
    """Run dev server with live reload."""
    _configure_logging(verbose)
    from .server import DevServer

    input_root = input_dir.resolve()
    try:
        server = DevServer(input_root, http_port=port, ws_port=ws_port)
        server.start()
    except FolioError as exc:
        _report_failure(exc, input_root)
        raise SystemExit(1) from None


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the configuration and first page of a new site.

    Args:
        root: Root directory for the new site.
    """
    name = root.name.replace("-", " ").replace("_", " ").title() or "Documentation"
    (root / "docs").mkdir(parents=True, exist_ok=True)
    (root / "folio.yaml").write_text(STARTER_CONFIG.format(name=name), encoding="utf-8")
    (root / "docs" / "index.md").write_text(STARTER_INDEX.format(name=name), encoding="utf-8")
