"""Site assembly for Folio.

This module drives a full build: it loads the configuration, parses and
renders every document, orders the published ones, builds the taxonomy
indexes and writes the output tree.

Output layout::

    index.html, page/<n>/index.html        reverse-chronological listing
    <document url>/index.html              one page per document
    <taxonomy>/index.html                  list of labels
    <taxonomy>/<label>/index.html          documents carrying a label
    rss.xml, sitemap.xml                   when base_url is configured

Key functions:
- build_site: Build the whole site and return a BuildResult.
- resolve_content_dir: Locate the Content Store of a project.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import TemplateError

from .collections import DocumentCollection, TaxonomyIndex
from .config import load_config, normalize_config, resolve_timezone
from .content import (
    ContentProcessor,
    Document,
    DocumentBuilder,
    DocumentFailure,
    FileContentLoader,
)
from .errors import BuildError, DocumentError, RenderError
from .feeds import create_default_feed_registry
from .templates import TemplateEngine
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        documents: Published documents, newest first.
        taxonomies: Taxonomy indexes keyed by taxonomy name.
        failures: Documents that could not be parsed, rendered or placed.
        written: Files written to the output directory, in write order.
        output_dir: Directory the site was written to.
        drafts: Number of drafts left out.
    """

    documents: DocumentCollection
    taxonomies: dict[str, TaxonomyIndex]
    failures: list[DocumentFailure]
    written: list[Path]
    output_dir: Path
    drafts: int = 0
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def resolve_content_dir(project_root: Path, config: dict[str, Any]) -> Path:
    """Return the Content Store: ``<root>/<content_dir>`` or the root itself."""
    candidate = project_root / config.get("content_dir", "content")
    return candidate if candidate.is_dir() else project_root


def build_site(
    project_root: Path,
    output_dir: Path | None = None,
    include_drafts: bool = False,
    base_url: str | None = None,
    clean_output: bool = True,
    config: dict[str, Any] | None = None,
) -> BuildResult:
    """Build the entire site.

    Args:
        project_root: Root directory of the project.
        output_dir: Destination; defaults to the configured ``output_dir``
            under ``project_root``.
        include_drafts: Publish documents marked ``draft: true``.
        base_url: Override for the configured ``base_url``.
        clean_output: Empty the output directory before writing.
        config: Preloaded configuration; read from ``folio.yaml`` if omitted.

    Returns:
        BuildResult. Per-document failures are reported in it rather than
        raised.

    Raises:
        ConfigError: If the configuration is invalid.
        BuildError: On unreadable sources, unwritable output or broken
            listing templates.
    """
    config = normalize_config(config) if config is not None else load_config(project_root)
    if base_url is not None:
        config["base_url"] = base_url
    output_dir = output_dir or project_root / config["output_dir"]
    content_dir = resolve_content_dir(project_root, config)
    _check_output_dir(project_root, content_dir, output_dir)

    builder = DocumentBuilder(
        content_dir,
        tz=resolve_timezone(config),
        taxonomies=config["taxonomies"],
        images_url=config["images_url"],
    )
    excluded = (
        output_dir,
        project_root / config["output_dir"],
        project_root / config["layouts_dir"],
        project_root / config["static_dir"],
    )
    loader = FileContentLoader(
        content_dir,
        exclude=[p for p in excluded if p not in (project_root, content_dir)],
    )
    loaded = ContentProcessor(
        content_dir, content_loader=loader, document_builder=builder
    ).load(include_drafts)
    failures = list(loaded.failures)
    documents = _place_documents(loaded.documents, config["taxonomies"], failures)
    collection = DocumentCollection(documents)
    taxonomies = {name: TaxonomyIndex(name, collection) for name in config["taxonomies"]}

    layouts_dir = project_root / config["layouts_dir"]
    engine = TemplateEngine(config, layouts_dir)
    engine.update_taxonomies(taxonomies)

    writer = _SiteWriter(output_dir)
    try:
        if clean_output:
            ensure_clean_dir(output_dir)
        else:
            output_dir.mkdir(parents=True, exist_ok=True)
        if config["static_dir"]:
            _copy_static(project_root / config["static_dir"], output_dir, writer)

        published: list[Document] = []
        for document in collection:
            try:
                rendered = engine.render_document(document)
            except TemplateError as exc:
                error = RenderError(f"template error: {exc}", path=document.path)
                logger.warning("Skipping %s", error)
                failures.append(DocumentFailure(path=document.path, error=error))
                continue
            writer.write_page(document.url, rendered)
            published.append(document)
        collection = DocumentCollection(published)
        taxonomies = {name: TaxonomyIndex(name, collection) for name in config["taxonomies"]}
        engine.update_taxonomies(taxonomies)

        paginate = config["paginate"]
        _write_listing(engine, writer, "/", config["title"], collection, paginate)
        for name, index in taxonomies.items():
            writer.write_page(engine.term_url(name), _render(engine.render_terms, index))
            for term in index.terms():
                _write_listing(
                    engine,
                    writer,
                    engine.term_url(name, term.slug),
                    term.label,
                    term.documents,
                    paginate,
                )
        writer.written.extend(
            create_default_feed_registry().generate_all(output_dir, collection, config)
        )
    except OSError as exc:
        raise BuildError(output_dir, f"cannot write output: {exc}", exc) from exc

    logger.info(
        "Built %d documents into %s (%d failed, %d drafts skipped)",
        len(collection),
        output_dir,
        len(failures),
        loaded.drafts,
    )
    return BuildResult(
        documents=collection,
        taxonomies=taxonomies,
        failures=sorted(failures, key=lambda f: str(f.path)),
        written=writer.written,
        output_dir=output_dir,
        drafts=loaded.drafts,
        config=config,
    )


class _SiteWriter:
    """Writes pages below the output directory and records what it wrote."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.written: list[Path] = []

    def write_page(self, url: str, html: str) -> Path:
        target_dir = self.output_dir / url.strip("/")
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / "index.html"
        target.write_text(html, encoding="utf-8")
        logger.debug("Wrote %s", target)
        self.written.append(target)
        return target


def _render(render, *args) -> str:
    try:
        return render(*args)
    except TemplateError as exc:
        raise BuildError(Path(getattr(exc, "filename", None) or "<template>"), str(exc), exc) from exc


def _write_listing(
    engine: TemplateEngine,
    writer: _SiteWriter,
    base_url: str,
    title: str,
    documents: DocumentCollection,
    paginate: int,
) -> None:
    pages = documents.paginate(paginate)
    for number, page in enumerate(pages, start=1):
        url = base_url if number == 1 else f"{base_url}page/{number}/"
        html = _render(engine.render_listing, title, page, number, len(pages), base_url)
        writer.write_page(url, html)


def _place_documents(
    documents: list[Document],
    taxonomies: list[str],
    failures: list[DocumentFailure],
) -> list[Document]:
    """Drop documents whose URL is taken, recording them as failures.

    Generated listings own ``/``, ``/page/...`` and ``/<taxonomy>/...``.
    Between two documents with the same URL the one with the smaller path
    wins.
    """
    reserved_prefixes = ("/page/",) + tuple(f"/{name}/" for name in taxonomies)
    claimed: dict[str, Document] = {}
    placed: list[Document] = []
    for document in sorted(documents, key=lambda d: d.rel_path):
        if document.url == "/" or document.url.startswith(reserved_prefixes):
            error = DocumentError(
                f"URL {document.url} is reserved for generated listings", path=document.path
            )
        elif document.url in claimed:
            other = claimed[document.url].rel_path
            error = DocumentError(f"URL {document.url} is already used by {other}", path=document.path)
        else:
            claimed[document.url] = document
            placed.append(document)
            continue
        logger.warning("Skipping %s", error)
        failures.append(DocumentFailure(path=document.path, error=error))
    return placed


def _copy_static(static_dir: Path, output_dir: Path, writer: _SiteWriter) -> None:
    if not static_dir.is_dir():
        return
    for source in sorted(static_dir.rglob("*")):
        if source.is_dir():
            continue
        target = output_dir / source.relative_to(static_dir)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        writer.written.append(target)


def _check_output_dir(project_root: Path, content_dir: Path, output_dir: Path) -> None:
    output = output_dir.resolve()
    for protected in (project_root.resolve(), content_dir.resolve()):
        if output == protected or protected.is_relative_to(output):
            raise BuildError(output_dir, "output directory would overwrite the sources")
