"""Command-line interface for Folio.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory.
- serve: Run the development server with live reload.
- new: Create a new content document.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import click
import questionary

from . import __version__
from .config import load_config
from .errors import BuildError, ConfigError
from .frontmatter import FrontMatter, dump_frontmatter
from .utils import slugify, strip_date_prefix, titleize

EXIT_DOCUMENT_ERRORS = 1
EXIT_FATAL = 2


@click.group()
@click.version_option(version=__version__, prog_name="folio")
@click.option("-v", "--verbose", is_flag=True, help="Log every written page")
def cli(verbose: bool):
    """Folio static content publisher."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("source", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.argument("output", required=False, type=click.Path(file_okay=False, path_type=Path))
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option("--base-url", help="Absolute site URL (overrides folio.yaml base_url)")
@click.option("--no-clean", is_flag=True, help="Keep existing files in the output directory")
def build(source: Path, output: Path | None, drafts: bool, base_url: str | None, no_clean: bool):
    """Build the site from SOURCE into OUTPUT."""
    from .build import build_site

    project_root = source.resolve()
    try:
        result = build_site(
            project_root,
            output_dir=output.resolve() if output else None,
            include_drafts=drafts,
            base_url=base_url,
            clean_output=not no_clean,
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    except BuildError as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Path: {_display_path(exc.source_path, project_root)}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(EXIT_FATAL) from None

    for failure in result.failures:
        location = _display_path(failure.path, project_root)
        line = getattr(failure.error, "line", None)
        if line is not None:
            location = f"{location}:{line}"
        kind = type(failure.error).__name__
        click.echo(
            click.style(f"{location}: ", fg="yellow") + f"{kind}: {failure.error.message}",
            err=True,
        )
    click.echo(f"Built {len(result.documents)} documents into {result.output_dir}")
    if result.failures:
        click.echo(
            click.style(f"{len(result.failures)} document(s) failed", fg="red", bold=True),
            err=True,
        )
        raise SystemExit(EXIT_DOCUMENT_ERRORS)


@cli.command()
@click.argument("source", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides folio.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides folio.yaml ws_port)",
)
def serve(source: Path, drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    from .server import DevServer

    try:
        server = DevServer(source.resolve(), http_port=port, ws_port=ws_port)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    server.start(include_drafts=drafts)


@cli.command()
@click.argument("name")
@click.argument("source", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--section", default="", help="Folder under the content directory")
@click.option("--title", help="Document title (asked for when omitted)")
@click.option("--tag", "tags", multiple=True, help="Tag label; repeatable")
@click.option("--category", "categories", multiple=True, help="Category label; repeatable")
@click.option("--draft/--no-draft", default=True, help="Mark the document as a draft")
@click.option(
    "--date",
    "date_",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]),
    help="Publication date (defaults to now)",
)
def new(
    name: str,
    source: Path,
    section: str,
    title: str | None,
    tags: tuple[str, ...],
    categories: tuple[str, ...],
    draft: bool,
    date_: datetime | None,
):
    """Create a new document called NAME."""
    from .build import resolve_content_dir

    project_root = source.resolve()
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None

    slug = slugify(strip_date_prefix(name), default="")
    if not slug:
        raise click.ClickException(f"Cannot derive a file name from {name!r}")
    target_dir = resolve_content_dir(project_root, config)
    if section:
        target_dir = target_dir / section
    target_path = target_dir / f"{slug}.md"
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {_display_path(target_path, project_root)}"
        )

    if title is None:
        title = _ask_title(titleize(f"{slug}.md"))

    when = date_ or datetime.now(timezone.utc).replace(microsecond=0)
    frontmatter = FrontMatter(
        title=title,
        date=when,
        draft=draft,
        tags=_unique(tags),
        categories=_unique(categories),
    )
    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(dump_frontmatter(frontmatter) + "\n<!--more-->\n", encoding="utf-8")
    click.echo(f"Created {_display_path(target_path, project_root)}")


def _ask_title(default: str) -> str:
    """Ask for a title on an interactive terminal, else use ``default``."""
    if not sys.stdin.isatty():
        return default
    answer = questionary.text(
        "Title:",
        default=default,
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if answer is None:
        raise click.Abort()
    return answer.strip()


def _unique(labels: tuple[str, ...]) -> list[str]:
    result: list[str] = []
    for label in labels:
        label = label.strip()
        if label and label not in result:
            result.append(label)
    return result


def _display_path(path: Path, project_root: Path) -> str:
    try:
        return str(path.resolve().relative_to(project_root))
    except ValueError:
        return str(path)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
