"""Utility functions for Folio.

String and path helpers shared by the parser, the content loader and the
site assembler.

Key functions:
    slugify: Convert names and labels to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract a date from a YYYY-MM-DD filename prefix.
    strip_date_prefix: Drop a YYYY-MM-DD- prefix from a filename stem.
    first_paragraph: Pull the first prose paragraph out of Markdown.
    is_markdown / is_html / is_ignored: Content file classification.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import date
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown")

_NON_SLUG_RE = re.compile(r"[\W_]+")


def _is_date_parts(parts: list[str]) -> bool:
    return [len(p) for p in parts] == [4, 2, 2] and all(p.isdigit() for p in parts)


def _split_date_prefix(name: str) -> tuple[list[str], list[str]]:
    parts = name.split("-")
    if len(parts) >= 4 and _is_date_parts(parts[:3]):
        return parts[:3], parts[3:]
    return [], parts


def strip_date_prefix(name: str) -> str:
    """Remove a ``YYYY-MM-DD-`` prefix from a filename stem.

    Examples:
        >>> strip_date_prefix("2019-01-07-hello-world")
        'hello-world'
    """
    _, rest = _split_date_prefix(name)
    return "-".join(rest)


def slugify(name: str, default: str = "index") -> str:
    """Convert a name or label to a slug.

    Letters outside ASCII are kept; callers strip filename date prefixes
    themselves with ``strip_date_prefix``.

    Args:
        name: Filename stem or free-form label.
        default: Value returned when nothing slug-worthy remains.

    Returns:
        Lowercase, hyphen-separated slug.
    """
    cleaned = name.lower()
    cleaned = _NON_SLUG_RE.sub("-", cleaned).strip("-")
    return cleaned or default


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> date | None:
    """Extract a date from a filename stem with a ``YYYY-MM-DD`` prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        The date, or None if the stem has no valid date prefix.
    """
    parts = name.split("-")
    if len(parts) >= 3 and _is_date_parts(parts[:3]):
        try:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def first_paragraph(text: str) -> str:
    """Return the first prose paragraph of a Markdown text.

    Headings, images, code fences, HTML blocks and horizontal rules are
    skipped. Lines inside the paragraph are kept as written so the result
    can be rendered as Markdown.
    """
    in_fence = False
    for block in re.split(r"\n\s*\n", text):
        stripped = block.strip()
        if not stripped:
            continue
        fences = len(re.findall(r"^ {0,3}(?:```|~~~)", stripped, re.MULTILINE))
        if in_fence or stripped.startswith(("```", "~~~")):
            # A fence whose count is odd toggles the state for later blocks.
            if fences % 2 == 1:
                in_fence = not in_fence
            continue
        if stripped.startswith(("#", "![", "<", "---", "***", "|")):
            continue
        return stripped
    return ""


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file (case-insensitive)."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    """Check if a path is an HTML content file."""
    return path.suffix.lower() in (".html", ".htm")


def is_ignored(rel: Path) -> bool:
    """Check if any component of a relative path is hidden or internal.

    Components starting with ``_`` or ``.`` are skipped by the loader.
    """
    return any(part.startswith(("_", ".")) for part in rel.parts)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.

    Raises:
        OSError: If the directory cannot be removed or created.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
