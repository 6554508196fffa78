"""HTML helpers for Folio.

Functions:
    join_root_url: Join a base URL with a site path.
    absolutize_html_urls: Rewrite root-relative URLs in HTML to absolute ones.
    strip_tags: Reduce an HTML fragment to plain text.
"""

from __future__ import annotations

import re

from markupsafe import Markup

_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)


def join_root_url(root_url: str, path: str) -> str:
    """Join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url("https://example.com/", "about/")
        'https://example.com/about/'
    """
    if not root_url:
        return path if path.startswith("/") else f"/{path}"
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def absolutize_html_urls(html: str, root_url: str) -> str:
    """Rewrite root-relative ``href``/``src`` values against ``root_url``.

    Only URLs starting with a single ``/`` are touched; external links,
    protocol-relative URLs, anchors and ``mailto:`` links are kept.

    Examples:
        >>> absolutize_html_urls('<a href="/about/">About</a>', "https://example.com")
        '<a href="https://example.com/about/">About</a>'
    """
    if not root_url:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if not url.startswith("/") or url.startswith("//"):
            return match.group(0)
        return f"{match.group('prefix')}{join_root_url(root_url, url)}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)


def strip_tags(html: str) -> str:
    """Return the text of an HTML fragment with whitespace collapsed."""
    return " ".join(Markup(html).striptags().split())
