"""Command-line interface for Quill.

This module defines the CLI commands using Click framework.
It provides commands for building sites and running the development server.

Commands:
- build: Build the site into the output directory.
- serve: Run development server that rebuilds on changes.
"""

from __future__ import annotations

import dataclasses
import logging
import signal
import threading
from pathlib import Path

import click

from . import __version__
from .config import Config, load_config

LOG_FORMAT = "==> %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def _load(src: str | None, dst: str | None, **overrides) -> Config:
    """Load quill.yaml from the working directory and apply CLI overrides."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
        if src is not None:
            overrides["src"] = project_root / src
        if dst is not None:
            overrides["dst"] = project_root / dst
        return dataclasses.replace(config, **overrides)
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from None


def _display_path(path: Path) -> Path:
    try:
        return path.resolve().relative_to(Path.cwd().resolve())
    except ValueError:
        return path


@click.group()
@click.version_option(version=__version__, prog_name="quill")
def cli():
    """Quill static site generator."""


@cli.command()
@click.option("--prod", is_flag=True, help="Production build: skip drafts, absolute URLs")
@click.option("--skip-feed", is_flag=True, help="Do not write feed.xml")
@click.option("--vanity", is_flag=True, help="Build a vanity import documentation site")
@click.option("--src", type=click.Path(file_okay=False), help="Source directory (overrides quill.yaml)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.argument("dst", required=False, type=click.Path(file_okay=False))
def build(prod: bool, skip_feed: bool, vanity: bool, src: str | None, verbose: bool, dst: str | None):
    """Build the site into DST (default: build)."""
    _configure_logging(verbose)
    from .build import BuildError, build_site

    # Unset flags leave quill.yaml settings in place.
    flags = {"prod": prod, "skip_feed": skip_feed, "vanity": vanity}
    config = _load(src, dst, **{name: True for name, value in flags.items() if value})

    try:
        result = build_site(config)
    except BuildError as exc:
        # Display user-friendly error message
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  File: {_display_path(exc.source_path)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    click.echo(f"Built {len(result.pages)} pages into {result.output_dir}")


@cli.command()
@click.option(
    "--listen",
    default="localhost:3000",
    show_default=True,
    help="host:port for the dev server",
)
@click.option("--src", type=click.Path(file_okay=False), help="Source directory (overrides quill.yaml)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.argument("dst", required=False, type=click.Path(file_okay=False))
def serve(listen: str, src: str | None, verbose: bool, dst: str | None):
    """Run dev server that rebuilds the site on changes."""
    _configure_logging(verbose)
    from .server import DevServer, parse_addr

    try:
        parse_addr(listen)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--listen") from None

    config = _load(src, dst)
    stop_event = threading.Event()

    def _stop(signum, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    server = DevServer(config, listen)
    try:
        server.serve(stop_event)
    except OSError as exc:
        raise click.ClickException(f"Could not serve on {listen}: {exc}") from None


def main():
    """Entry point for the CLI application."""
    cli()
