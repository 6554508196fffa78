"""Feed generation for Folio.

Feeds need absolute URLs, so every generator is skipped when the site has no
``base_url``. Output depends only on the documents, never on the wall clock,
which keeps repeated builds byte-identical.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Writes sitemap.xml.
    RSSGenerator: Writes rss.xml (RSS 2.0).
    FeedRegistry: Runs a set of generators.

Functions:
    create_default_feed_registry: Registry with the sitemap and RSS generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from email.utils import format_datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from markupsafe import escape

from .html_utils import absolutize_html_urls, join_root_url

if TYPE_CHECKING:
    from .content import Document


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename, relative to the output directory."""
        ...

    @abstractmethod
    def generate(self, documents: list[Document], config: dict[str, Any]) -> str | None:
        """Generate feed content.

        Args:
            documents: Published documents, newest first.
            config: Site configuration.

        Returns:
            Feed text, or None when the feed cannot be produced.
        """
        ...

    def write(self, output_dir: Path, documents: list[Document], config: dict[str, Any]) -> Path | None:
        """Generate and write the feed; return the written path, if any."""
        content = self.generate(documents, config)
        if content is None:
            return None
        output_path = output_dir / self.filename
        output_path.write_text(content, encoding="utf-8")
        return output_path


class SitemapGenerator(FeedGenerator):
    """sitemap.xml listing the home page and every document."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, documents: list[Document], config: dict[str, Any]) -> str | None:
        base_url = str(config.get("base_url", "")).rstrip("/")
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        if documents:
            newest = max(d.date for d in documents).strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{escape(base_url)}/</loc><lastmod>{newest}</lastmod></url>")
        for document in sorted(documents, key=lambda d: d.url):
            if document.url == "/":
                continue
            loc = escape(join_root_url(base_url, document.url))
            lastmod = document.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """RSS 2.0 feed of documents, newest first.

    ``lastBuildDate`` is the date of the newest document.
    """

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, documents: list[Document], config: dict[str, Any]) -> str | None:
        base_url = str(config.get("base_url", "")).rstrip("/")
        if not base_url:
            return None
        title = escape(config.get("title") or "Folio")
        description = escape(config.get("description") or "")
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{description}</description>",
        ]
        if documents:
            newest = max(d.date for d in documents)
            rss.append(f"<lastBuildDate>{format_datetime(newest)}</lastBuildDate>")
        for document in documents:
            link = escape(join_root_url(base_url, document.url))
            summary = absolutize_html_urls(document.summary, base_url)
            item = [
                "<item>",
                f"<title>{escape(document.title)}</title>",
                f"<link>{link}</link>",
                f'<guid isPermaLink="true">{link}</guid>',
                f"<pubDate>{format_datetime(document.date)}</pubDate>",
            ]
            item.extend(f"<category>{escape(label)}</category>" for label in document.categories)
            item.append(f"<description>{escape(summary)}</description>")
            item.append("</item>")
            rss.append("".join(item))
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Runs registered feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        documents: Iterable[Document],
        config: dict[str, Any],
    ) -> list[Path]:
        """Write every feed that can be produced.

        Returns:
            Paths of the files written.
        """
        documents_list = list(documents)
        written = []
        for generator in self._generators:
            path = generator.write(output_dir, documents_list, config)
            if path is not None:
                written.append(path)
        return written


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
