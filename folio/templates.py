"""Template rendering for Folio.

Pages are rendered with Jinja2. Templates are looked up first in the
project's ``layouts/`` directory, then among the built-in layouts shipped
with the package, so a project can override any of ``base``, ``single``,
``list`` or ``terms`` by dropping a file with the same name.

Key class:
- TemplateEngine: Renders documents, listings and taxonomy indexes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape
from pygments.formatters import HtmlFormatter

from .collections import DocumentCollection, TaxonomyIndex
from .content import Document
from .html_utils import join_root_url
from .renderers import Heading

BUILTIN_LAYOUTS = Path(__file__).parent / "layouts"
TEMPLATE_SUFFIXES = (".html.jinja", ".jinja", ".html")

__all__ = ["BUILTIN_LAYOUTS", "TemplateEngine", "render_toc"]


def render_toc(document: Document) -> Markup:
    """Render a document's headings as nested ``<ul>`` lists.

    Args:
        document: Document whose ``toc`` is rendered.

    Returns:
        Markup-safe HTML, empty when the document has no headings.
    """
    return _render_toc_from_headings(document.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    if not headings:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []
    for heading in headings:
        level = heading.level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")
        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)
        text = Markup(heading.text).striptags()
        html_parts.append(f'<li><a href="#{escape(heading.id)}">{escape(text)}</a>')
    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")
    return Markup("".join(html_parts))


class TemplateEngine:
    """Jinja2 environment configured for a Folio project.

    Attributes:
        config: Site configuration, exposed to templates as ``site``.
        env: The Jinja2 environment.
        layouts_dir: Project template directory (may not exist).
    """

    def __init__(self, config: dict[str, Any], layouts_dir: Path | None = None):
        self.config = config
        self.layouts_dir = layouts_dir
        search_path = [str(BUILTIN_LAYOUTS)]
        if layouts_dir is not None and layouts_dir.is_dir():
            search_path.insert(0, str(layouts_dir))
        self.env = Environment(
            loader=FileSystemLoader(search_path),
            autoescape=select_autoescape(["html", "xml", "jinja"]),
            keep_trailing_newline=True,
        )
        self.taxonomies: dict[str, TaxonomyIndex] = {}
        self._install_globals()

    def _install_globals(self) -> None:
        self.env.globals["site"] = self.config
        self.env.globals["url_for"] = self.url_for
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.globals["render_toc"] = render_toc
        self.env.globals["taxonomies"] = self.taxonomies
        self.env.globals["term_url"] = self.term_url

    @staticmethod
    def _pygments_css() -> Markup:
        """Return the Pygments stylesheet for the ``.highlight`` class."""
        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    def update_taxonomies(self, taxonomies: dict[str, TaxonomyIndex]) -> None:
        self.taxonomies.clear()
        self.taxonomies.update(taxonomies)

    def url_for(self, path: str) -> str:
        """Return a site URL for ``path``, prefixed by ``base_url`` when set.

        Absolute URLs pass through unchanged.
        """
        if path.startswith(("http://", "https://", "//")):
            return path
        return join_root_url(self.config.get("base_url", ""), path)

    @staticmethod
    def term_url(taxonomy: str, slug: str | None = None, page: int = 1) -> str:
        """URL of a taxonomy index, or of one term's listing page."""
        url = f"/{taxonomy}/"
        if slug:
            url += f"{slug}/"
        if page > 1:
            url += f"page/{page}/"
        return url

    def get_template(self, name: str):
        """Resolve a layout name against the known template suffixes.

        Any suffix found in the project layouts beats the built-in layouts.
        """
        candidates = [f"{name}{suffix}" for suffix in TEMPLATE_SUFFIXES]
        if self.layouts_dir is not None:
            for candidate in candidates:
                if (self.layouts_dir / candidate).is_file():
                    return self.env.get_template(candidate)
        return self.env.select_template(candidates)

    def render(self, layout: str, **context: Any) -> str:
        return self.get_template(layout).render(**context)

    def render_document(self, document: Document) -> str:
        """Render a single document page with the ``single`` layout.

        Documents may name another layout with a ``layout`` front-matter key.
        """
        layout = document.frontmatter.extra.get("layout") or "single"
        terms = {
            name: index.labels_of(document) for name, index in self.taxonomies.items()
        }
        return self.render(
            str(layout),
            document=document,
            content=Markup(document.content),
            terms=terms,
        )

    def render_listing(
        self,
        title: str,
        documents: DocumentCollection,
        page: int,
        pages: int,
        base_url: str,
    ) -> str:
        """Render one page of a reverse-chronological listing."""
        return self.render(
            "list",
            title=title,
            documents=documents,
            pagination=_pagination(page, pages, base_url),
        )

    def render_terms(self, index: TaxonomyIndex) -> str:
        """Render the index page of a taxonomy."""
        return self.render("terms", title=index.name.capitalize(), index=index)


def _pagination(page: int, pages: int, base_url: str) -> dict[str, Any]:
    def page_url(number: int) -> str:
        return base_url if number == 1 else f"{base_url}page/{number}/"

    return {
        "page": page,
        "pages": pages,
        "prev_url": page_url(page - 1) if page > 1 else None,
        "next_url": page_url(page + 1) if page < pages else None,
    }
