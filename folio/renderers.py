"""Body renderers for Folio.

This module turns the body of a document into HTML. Markdown is rendered with
mistune; fenced code blocks are highlighted with Pygments and may carry
highlight directives after the language name::

    ```go {3,5-6}
    ```go {hl_lines=[2,"4-5"], linenos=table, linenostart=10}

Key pieces:
- split_more: Split a body at the ``<!--more-->`` marker.
- check_fences: Reject bodies with an unterminated code fence.
- parse_code_info: Parse a fence info string into CodeBlockOptions.
- MarkdownRenderer / HTMLRenderer: ContentRenderer implementations.
- RendererRegistry: Picks the renderer for a source path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import mistune
from markupsafe import escape
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import RenderError
from .protocols import ContentRenderer
from .utils import is_html, is_markdown

MORE_RE = re.compile(r"<!--\s*more\s*-->", re.IGNORECASE)
FENCE_RE = re.compile(r"^ {0,3}(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_CODE_SPAN_RE = re.compile(r"(`+)(?!`).*?(?<!`)\1(?!`)")

_LINE_SPEC_RE = re.compile(r"[\d\s,\-]*")
_OPTION_RE = re.compile(
    r"""\s*(?P<key>\w+)\s*=\s*(?P<value>\[[^\]]*\]|"[^"]*"|'[^']*'|[^,\s]+)\s*(?:,|$)"""
)
_SKIP_IMAGE_PREFIXES = ("http://", "https://", "//", "/", "data:", "#")


@dataclass
class Heading:
    """A rendered heading, kept for table-of-contents generation.

    Attributes:
        id: Anchor id of the heading.
        text: Rendered heading text.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class CodeBlockOptions:
    """Options parsed from a fenced code block's info string."""

    language: str = ""
    hl_lines: list[int] = field(default_factory=list)
    linenos: str | bool = False
    linenostart: int = 1

    @property
    def has_directives(self) -> bool:
        return bool(self.hl_lines) or bool(self.linenos) or self.linenostart != 1


class _FenceState:
    """Tracks fenced code blocks while walking a text line by line."""

    def __init__(self):
        self.opening: tuple[str, int] | None = None

    def feed(self, line: str, number: int) -> bool:
        """Advance past ``line``; True if it belongs to a fenced block."""
        match = FENCE_RE.match(line)
        if self.opening is None:
            if match is None:
                return False
            fence, info = match.group("fence"), match.group("info")
            if fence[0] == "`" and "`" in info:
                return False
            self.opening = (fence, number)
            return True
        if match is not None:
            fence = match.group("fence")
            if (
                fence[0] == self.opening[0][0]
                and len(fence) >= len(self.opening[0])
                and not match.group("info").strip()
            ):
                self.opening = None
        return True


def _in_code_span(line: str, pos: int) -> bool:
    return any(span.start() < pos < span.end() for span in _CODE_SPAN_RE.finditer(line))


def split_more(body: str) -> tuple[str, str, bool]:
    """Split a body at the first ``<!--more-->`` marker.

    Markers inside fenced code blocks or inline code are content, not
    markers, and are left alone.

    Args:
        body: Raw body text.

    Returns:
        Tuple of (teaser, full body without the marker, truncated flag).
        Without a marker the teaser and the full body are both ``body``.

    Examples:
        >>> split_more("A<!--more-->B")
        ('A', 'AB', True)
    """
    fences = _FenceState()
    offset = 0
    for number, line in enumerate(body.splitlines(keepends=True), start=1):
        if not fences.feed(line, number):
            for match in MORE_RE.finditer(line):
                if _in_code_span(line, match.start()):
                    continue
                teaser = body[: offset + match.start()]
                return teaser, teaser + body[offset + match.end() :], True
        offset += len(line)
    return body, body, False


def check_fences(text: str) -> None:
    """Ensure every fenced code block in ``text`` is closed.

    Raises:
        RenderError: Naming the line of the fence that never closes.
    """
    fences = _FenceState()
    for number, line in enumerate(text.splitlines(), start=1):
        fences.feed(line, number)
    if fences.opening is not None:
        fence, line = fences.opening
        raise RenderError(f"unterminated code fence '{fence}'", line=line)


def parse_code_info(info: str | None) -> CodeBlockOptions:
    """Parse a fence info string such as ``go {hl_lines=[2,"4-5"]}``.

    Unknown option keys are ignored so that directives written for other
    generators do not break a build.

    Raises:
        RenderError: If a directive value is malformed.
    """
    info = (info or "").strip()
    match = re.match(r"^([^\s{]*)\s*(.*)$", info, re.DOTALL)
    language, rest = match.group(1), match.group(2).strip()
    options = CodeBlockOptions(language=language)
    if not (rest.startswith("{") and rest.endswith("}")):
        return options
    body = rest[1:-1].strip()
    if _LINE_SPEC_RE.fullmatch(body):
        options.hl_lines = _parse_line_ranges(body)
        return options

    pos = 0
    while pos < len(body):
        option = _OPTION_RE.match(body, pos)
        if option is None or option.end() == pos:
            raise RenderError(f"malformed code block directive: {{{body}}}")
        pos = option.end()
        key, value = option.group("key"), option.group("value").strip("\"'")
        if key == "hl_lines":
            options.hl_lines = _parse_line_ranges(value)
        elif key == "linenos":
            options.linenos = _parse_linenos(value)
        elif key == "linenostart":
            if not value.isdigit() or int(value) < 1:
                raise RenderError(f"linenostart must be a positive integer, got {value!r}")
            options.linenostart = int(value)
    return options


def _parse_line_ranges(value: str) -> list[int]:
    lines: set[int] = set()
    for item in re.split(r"[\s,]+", value.strip("[] ")):
        item = item.strip("\"'")
        if not item:
            continue
        start, sep, end = item.partition("-")
        if not start.isdigit() or (sep and not end.isdigit()):
            raise RenderError(f"invalid highlight line range {item!r}")
        first, last = int(start), int(end) if sep else int(start)
        if first < 1 or last < first:
            raise RenderError(f"invalid highlight line range {item!r}")
        lines.update(range(first, last + 1))
    return sorted(lines)


def _parse_linenos(value: str) -> str | bool:
    lowered = value.lower()
    if lowered in ("true", "table"):
        return "table"
    if lowered == "inline":
        return "inline"
    if lowered == "false":
        return False
    raise RenderError(f"linenos must be one of true, false, table, inline; got {value!r}")


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly anchor id from rendered heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "section"


def _rewrite_image_path(src: str, folder: str, images_url: str) -> str:
    """Rewrite a relative image source to live under ``images_url``.

    Args:
        src: Original image source.
        folder: Folder of the document, relative to the Content Store.
        images_url: URL prefix for images.

    Returns:
        The rewritten source, or ``src`` unchanged if it is absolute.
    """
    if not src or src.startswith(_SKIP_IMAGE_PREFIXES) or "://" in src:
        return src
    prefix = Path(folder) if folder else Path()
    normalized = (prefix / src).as_posix()
    return f"{images_url.rstrip('/')}/{normalized}"


class _HighlightRenderer(mistune.HTMLRenderer):
    """mistune renderer with heading anchors, image rewriting and Pygments.

    Attributes:
        folder: Folder of the document being rendered.
        images_url: URL prefix for relative image sources.
        headings: Headings collected while rendering.
    """

    def __init__(self, folder: str, images_url: str):
        super().__init__(escape=False)
        self.folder = folder
        self.images_url = images_url
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        self.headings.append(Heading(id=heading_id, text=text, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        src = _rewrite_image_path(url or "", self.folder, self.images_url)
        return super().image(text, src, title)

    def block_code(self, code: str, info: str | None = None) -> str:
        options = parse_code_info(info)
        language = options.language or ("text" if options.has_directives else "")
        if language:
            try:
                lexer = get_lexer_by_name(language)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(
                    cssclass="highlight",
                    hl_lines=options.hl_lines,
                    linenos=options.linenos,
                    linenostart=options.linenostart,
                )
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape(options.language)}"' if options.language else ""
        return f"<pre><code{lang_class}>{escape(code)}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown bodies to HTML.

    Attributes:
        images_url: URL prefix applied to relative image sources.
    """

    source_type = "markdown"

    def __init__(self, images_url: str = "/images"):
        self.images_url = images_url

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Render Markdown to HTML.

        Args:
            content: Markdown source.
            folder: Folder of the document, for image rewriting.

        Returns:
            Tuple of (HTML, headings in document order).

        Raises:
            RenderError: On an unterminated fence or a bad code directive.
        """
        check_fences(content)
        renderer = _HighlightRenderer(folder, self.images_url)
        markdown = mistune.create_markdown(
            renderer=renderer, plugins=["strikethrough", "footnotes", "table", "url"]
        )
        return markdown(content), renderer.headings


class HTMLRenderer:
    """Passes HTML bodies through unchanged."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        return content, []


class RendererRegistry:
    """Ordered collection of renderers; the first that accepts a path wins."""

    def __init__(self, renderers: list[ContentRenderer] | None = None):
        self._renderers: list[ContentRenderer] = list(renderers or [])

    def register(self, renderer: ContentRenderer) -> None:
        if not isinstance(renderer, ContentRenderer):
            raise TypeError(f"{renderer!r} does not implement ContentRenderer")
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


def create_default_registry(images_url: str = "/images") -> RendererRegistry:
    """Create a registry holding the Markdown and HTML renderers."""
    registry = RendererRegistry()
    registry.register(MarkdownRenderer(images_url))
    registry.register(HTMLRenderer())
    return registry
