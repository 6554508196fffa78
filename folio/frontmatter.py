"""Front-matter parsing for Folio.

A document starts with a YAML block fenced by ``---`` lines::

    ---
    title: "Docker and Go"
    date: 2019-01-07
    tags: [docker, go]
    ---
    Body text...

This module splits that block from the body, loads it with PyYAML and
coerces the recognised fields (title, date, draft, tags, categories, image,
slug, description) to their types. Every other key is kept in
``FrontMatter.extra``.

Key functions:
- split_frontmatter: Separate the metadata block from the body.
- parse_frontmatter: Split and coerce into a FrontMatter record.
- dump_frontmatter: Serialise a FrontMatter back to a delimited block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError
from .utils import extract_date_from_name, titleize

DELIMITER = "---"
CLOSING_DELIMITERS = ("---", "...")

_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


@dataclass
class FrontMatter:
    """Structured metadata of one document.

    Attributes:
        title: Document title.
        date: Publication timestamp (always timezone-aware).
        draft: Whether the document is excluded from published output.
        tags: Ordered, de-duplicated tag labels.
        categories: Ordered, de-duplicated category labels.
        image: Optional cover image reference.
        slug: Optional explicit URL slug.
        description: Optional summary used in feeds and meta tags.
        extra: Any other front-matter keys, unmodified.
    """

    title: str
    date: datetime
    draft: bool = False
    tags: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    image: str | None = None
    slug: str | None = None
    description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def taxonomy(self, name: str) -> list[str]:
        """Return the labels of a taxonomy field (``tags``, ``categories``, ...)."""
        if name == "tags":
            return self.tags
        if name == "categories":
            return self.categories
        value = self.extra.get(name)
        return _coerce_labels(name, value)


def split_frontmatter(text: str) -> tuple[str, str]:
    """Split raw document text into its metadata block and body.

    Args:
        text: Full document text.

    Returns:
        Tuple of (metadata text, body text).

    Raises:
        ParseError: If the opening delimiter is missing or the block never
            closes.
    """
    text = text.lstrip("\ufeff")
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        raise ParseError("missing opening front-matter delimiter '---'", line=1)
    for index in range(1, len(lines)):
        if lines[index].rstrip() in CLOSING_DELIMITERS:
            return "".join(lines[1:index]), "".join(lines[index + 1 :])
    raise ParseError("unterminated front matter: no closing '---' delimiter", line=1)


def parse_frontmatter(
    text: str,
    path: Path | None = None,
    tz: tzinfo = timezone.utc,
) -> tuple[FrontMatter, str]:
    """Parse a document into its front matter and body.

    Args:
        text: Full document text.
        path: Source path, used for error messages and filename fallbacks.
        tz: Zone applied to dates written without an offset.

    Returns:
        Tuple of (FrontMatter, body text).

    Raises:
        ParseError: On any structural or type problem.
    """
    try:
        block, body = split_frontmatter(text)
        data = _load_block(block)
        return _build(data, path, tz), body
    except ParseError as exc:
        if path is not None:
            exc.with_path(path)
        raise


def dump_frontmatter(frontmatter: FrontMatter) -> str:
    """Serialise front matter to a ``---`` delimited YAML block.

    Default values (no tags, ``draft: false``, unset optionals) are left
    out; parsing the result yields an equal FrontMatter.
    """
    data: dict[str, Any] = {
        "title": frontmatter.title,
        "date": frontmatter.date.isoformat(),
    }
    if frontmatter.draft:
        data["draft"] = True
    for key in ("tags", "categories"):
        labels = getattr(frontmatter, key)
        if labels:
            data[key] = list(labels)
    for key in ("image", "slug", "description"):
        value = getattr(frontmatter, key)
        if value is not None:
            data[key] = value
    data.update(frontmatter.extra)
    block = yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    return f"{DELIMITER}\n{block}{DELIMITER}\n"


def _load_block(block: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        # +2: the opening delimiter line and 1-based numbering.
        line = mark.line + 2 if mark is not None else None
        problem = getattr(exc, "problem", None) or str(exc)
        raise ParseError(f"invalid YAML in front matter: {problem}", line=line) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(
            f"front matter must be a mapping, got {type(data).__name__}", line=2
        )
    return {str(key): value for key, value in data.items()}


def _build(data: dict[str, Any], path: Path | None, tz: tzinfo) -> FrontMatter:
    known = {"title", "date", "draft", "tags", "categories", "image", "slug", "description"}

    title = _coerce_optional_str("title", data.get("title"))
    if not title:
        title = titleize(path.name) if path is not None else "Untitled"

    raw_date = data.get("date")
    if raw_date is None and path is not None:
        raw_date = extract_date_from_name(path.stem)
    if raw_date is None:
        raise ParseError("missing required field 'date'")

    return FrontMatter(
        title=title,
        date=_coerce_datetime("date", raw_date, tz),
        draft=_coerce_bool("draft", data.get("draft", False)),
        tags=_coerce_labels("tags", data.get("tags")),
        categories=_coerce_labels("categories", data.get("categories")),
        image=_coerce_optional_str("image", data.get("image")),
        slug=_coerce_optional_str("slug", data.get("slug")),
        description=_coerce_optional_str("description", data.get("description")),
        extra={key: value for key, value in data.items() if key not in known},
    )


def _coerce_optional_str(name: str, value: Any) -> str | None:
    if value is None:
        return None
    # YAML reads bare numbers and dates such as `title: 2019-01-07` as scalars.
    if isinstance(value, bool) or not isinstance(value, (str, int, float, date)):
        raise ParseError(f"field '{name}' must be a string, got {type(value).__name__}")
    return str(value)


def _coerce_datetime(name: str, value: Any, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ParseError(f"field '{name}' is not a valid date: {value!r}") from None
    else:
        raise ParseError(f"field '{name}' must be a date, got {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ParseError(f"field '{name}' must be a boolean, got {value!r}")


def _coerce_labels(name: str, value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items: list[Any] = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ParseError(f"field '{name}' must be a list of strings, got {type(value).__name__}")
    labels: list[str] = []
    for item in items:
        if isinstance(item, bool) or not isinstance(item, (str, int, float)):
            raise ParseError(f"field '{name}' contains a non-string item: {item!r}")
        label = str(item).strip()
        if label and label not in labels:
            labels.append(label)
    return labels
