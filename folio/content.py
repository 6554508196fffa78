"""Content loading for Folio.

This module discovers documents in the Content Store, parses their front
matter, renders their bodies and produces Document records.

Key classes:
- Document: A parsed and rendered source document.
- FileContentLoader: Discovers candidate source files.
- UrlDeriver: Maps a source path and slug to an output URL.
- DocumentBuilder: Builds one Document from one file.
- ContentProcessor: Loads every document, collecting per-document failures.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from pathlib import Path

from .errors import BuildError, DocumentError, ParseError, RenderError
from .frontmatter import FrontMatter, parse_frontmatter
from .html_utils import strip_tags
from .renderers import (
    Heading,
    RendererRegistry,
    _rewrite_image_path,
    create_default_registry,
    split_more,
)
from .utils import first_paragraph, is_html, is_ignored, is_markdown, slugify, strip_date_prefix

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 160

__all__ = [
    "ContentProcessor",
    "Document",
    "DocumentBuilder",
    "DocumentFailure",
    "FileContentLoader",
    "Heading",
    "LoadResult",
    "UrlDeriver",
]


@dataclass
class Document:
    """A source document after parsing and rendering.

    Attributes:
        path: Absolute path of the source file.
        rel_path: Path relative to the Content Store, POSIX style. Identifies
            the document.
        frontmatter: Parsed front matter.
        body: Raw body text after the front matter.
        teaser: Raw body text before the more marker.
        full_body: Raw body text with the more marker removed.
        content: Rendered HTML of ``full_body``.
        summary: Rendered HTML shown in listings.
        truncated: Whether the body had a more marker.
        toc: Headings of the rendered body.
        section: First folder under the Content Store (``""`` at the root).
        folder: Folder path relative to the Content Store.
        slug: URL slug.
        url: Site-relative URL, always ending in ``/``.
        source_type: ``"markdown"`` or ``"html"``.
        taxonomies: Labels per configured taxonomy.
    """

    path: Path
    rel_path: str
    frontmatter: FrontMatter
    body: str
    teaser: str
    full_body: str
    content: str
    summary: str
    truncated: bool
    section: str
    folder: str
    slug: str
    url: str
    source_type: str
    toc: list[Heading] = field(default_factory=list)
    taxonomies: dict[str, list[str]] = field(default_factory=dict)
    image_url: str | None = None

    @property
    def title(self) -> str:
        return self.frontmatter.title

    @property
    def date(self) -> datetime:
        return self.frontmatter.date

    @property
    def draft(self) -> bool:
        return self.frontmatter.draft

    @property
    def tags(self) -> list[str]:
        return self.frontmatter.tags

    @property
    def categories(self) -> list[str]:
        return self.frontmatter.categories

    @property
    def image(self) -> str | None:
        return self.frontmatter.image

    @property
    def description(self) -> str:
        """Front-matter description, else the start of the summary text."""
        if self.frontmatter.description:
            return self.frontmatter.description
        return strip_tags(self.summary)[:DESCRIPTION_LIMIT]


@dataclass
class DocumentFailure:
    """A document that could not be parsed or rendered."""

    path: Path
    error: DocumentError

    def __str__(self) -> str:
        return str(self.error)


@dataclass
class LoadResult:
    """Outcome of loading the Content Store.

    Attributes:
        documents: Successfully built documents (drafts removed unless
            requested), in discovery order.
        failures: Documents that failed, in discovery order.
        drafts: Number of draft documents skipped.
    """

    documents: list[Document] = field(default_factory=list)
    failures: list[DocumentFailure] = field(default_factory=list)
    drafts: int = 0


class FileContentLoader:
    """Discovers content files below a directory.

    Attributes:
        content_dir: The Content Store directory.
        exclude: Directories below it that never hold content (output,
            layouts, static files).
    """

    def __init__(self, content_dir: Path, exclude: Iterable[Path] = ()):
        self.content_dir = content_dir
        self.exclude = [Path(p) for p in exclude]

    def iter_files(self) -> list[Path]:
        """Return candidate source files, sorted by relative path.

        Raises:
            BuildError: If the directory does not exist or cannot be listed.
        """
        if not self.content_dir.is_dir():
            raise BuildError(self.content_dir, "content directory not found")
        files: list[Path] = []
        try:
            for path in self.content_dir.rglob("*"):
                rel = path.relative_to(self.content_dir)
                if is_ignored(rel) or path.is_dir() or self._is_excluded(path):
                    continue
                if is_markdown(path) or is_html(path):
                    files.append(path)
        except OSError as exc:
            raise BuildError(self.content_dir, f"cannot list content: {exc}", exc) from exc
        return sorted(files, key=lambda p: p.relative_to(self.content_dir).as_posix())

    def _is_excluded(self, path: Path) -> bool:
        return any(path.is_relative_to(excluded) for excluded in self.exclude)


class UrlDeriver:
    """Derives site URLs for documents."""

    def derive(self, rel: Path, slug: str) -> str:
        """Derive the URL for a document.

        Args:
            rel: Path relative to the Content Store.
            slug: URL slug of the document.

        Returns:
            URL path such as ``/posts/hello-world/``. A document named
            ``index`` maps to the URL of its folder.
        """
        segments = [part for part in rel.parent.parts if part]
        if rel.stem.lower() != "index":
            segments.append(slug)
        path = "/".join(segments)
        return f"/{path}/" if path else "/"


class DocumentBuilder:
    """Builds Document records from source files.

    Attributes:
        content_dir: The Content Store directory.
        renderer_registry: Renderers available for bodies.
        tz: Zone for naive front-matter dates.
        taxonomies: Taxonomy names to collect labels for.
        images_url: URL prefix for relative images.
    """

    def __init__(
        self,
        content_dir: Path,
        renderer_registry: RendererRegistry | None = None,
        tz: tzinfo = timezone.utc,
        taxonomies: list[str] | None = None,
        images_url: str = "/images",
    ):
        self.content_dir = content_dir
        self.images_url = images_url
        self.renderer_registry = renderer_registry or create_default_registry(images_url)
        self.tz = tz
        self.taxonomies = list(taxonomies) if taxonomies is not None else ["tags", "categories"]
        self.url_deriver = UrlDeriver()

    def build(self, path: Path) -> Document:
        """Build a Document from a source file.

        Raises:
            ParseError: If the front matter is invalid.
            RenderError: If the body cannot be rendered.
            OSError: If the file cannot be read.
        """
        rel = path.relative_to(self.content_dir)
        folder = rel.parent.as_posix() if rel.parent != Path(".") else ""
        raw = path.read_bytes()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"file is not valid UTF-8: {exc.reason}", path=path) from exc

        frontmatter, body = parse_frontmatter(text, path, self.tz)
        # Lines above the body: the front-matter block and its delimiters.
        body_offset = len(text[: len(text) - len(body)].splitlines())
        renderer = self.renderer_registry.get_renderer(path)
        if renderer is None:
            raise ParseError("no renderer for this file type", path=path)
        teaser, full_body, truncated = split_more(body)
        try:
            taxonomies = {name: frontmatter.taxonomy(name) for name in self.taxonomies}
            content, toc = renderer.render(full_body, folder)
            if truncated:
                summary, _ = renderer.render(teaser, folder)
            else:
                summary, _ = renderer.render(first_paragraph(full_body), folder)
        except RenderError as exc:
            raise exc.shift_line(body_offset).with_path(path)
        except DocumentError as exc:
            raise exc.with_path(path)

        slug = slugify(frontmatter.slug or strip_date_prefix(path.stem))
        image_url = None
        if frontmatter.image:
            image_url = _rewrite_image_path(frontmatter.image, folder, self.images_url)

        return Document(
            path=path,
            rel_path=rel.as_posix(),
            frontmatter=frontmatter,
            body=body,
            teaser=teaser,
            full_body=full_body,
            content=content,
            summary=summary,
            truncated=truncated,
            section=rel.parts[0] if len(rel.parts) > 1 else "",
            folder=folder,
            slug=slug,
            url=self.url_deriver.derive(rel, slug),
            source_type=renderer.source_type,
            toc=toc,
            taxonomies=taxonomies,
            image_url=image_url,
        )


class ContentProcessor:
    """Loads every document of a Content Store.

    Attributes:
        content_dir: The Content Store directory.
    """

    def __init__(
        self,
        content_dir: Path,
        content_loader: FileContentLoader | None = None,
        document_builder: DocumentBuilder | None = None,
    ):
        self.content_dir = content_dir
        self._content_loader = content_loader or FileContentLoader(content_dir)
        self._document_builder = document_builder or DocumentBuilder(content_dir)

    def load(self, include_drafts: bool = False) -> LoadResult:
        """Parse and render every content file.

        A ParseError or RenderError only drops the offending document; it is
        recorded in ``LoadResult.failures``.

        Args:
            include_drafts: Keep documents marked ``draft: true``.

        Raises:
            BuildError: If a source file cannot be read.
        """
        result = LoadResult()
        for path in self._content_loader.iter_files():
            try:
                document = self._document_builder.build(path)
            except DocumentError as exc:
                logger.warning("Skipping %s", exc)
                result.failures.append(DocumentFailure(path=path, error=exc))
                continue
            except OSError as exc:
                raise BuildError(path, f"cannot read source file: {exc}", exc) from exc
            if document.draft and not include_drafts:
                logger.debug("Skipping draft %s", document.rel_path)
                result.drafts += 1
                continue
            result.documents.append(document)
        return result
