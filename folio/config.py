"""Project configuration for Folio.

Configuration lives in an optional ``folio.yaml`` at the project root. Values
found there are merged over ``DEFAULT_CONFIG``; unknown keys are preserved
and handed to templates as part of ``site``.

Key functions:
- load_config: Read and validate ``folio.yaml``.
- resolve_timezone: Turn the configured zone name into a tzinfo.
"""

from __future__ import annotations

import re
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "folio.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Folio",
    "description": "",
    "base_url": "",
    "content_dir": "content",
    "layouts_dir": "layouts",
    "static_dir": "static",
    "output_dir": "public",
    "images_url": "/images",
    "paginate": 10,
    "timezone": "UTC",
    "taxonomies": ["tags", "categories"],
    "port": 4000,
}

_STRING_KEYS = (
    "title",
    "description",
    "base_url",
    "content_dir",
    "layouts_dir",
    "static_dir",
    "output_dir",
    "images_url",
    "timezone",
)
_INT_KEYS = ("paginate", "port", "ws_port")
_TAXONOMY_NAME_RE = re.compile(r"[\w-]+")

# Taxonomy names become top-level URL segments next to the listing pages.
RESERVED_TAXONOMY_NAMES = frozenset({"page"})


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from ``folio.yaml``.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary of configuration values with defaults applied.

    Raises:
        ConfigError: If the file cannot be read, is not a YAML mapping, or
            holds a value of the wrong type.
    """
    loaded: dict[str, Any] = {}
    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigError(f"cannot read {config_path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
    return normalize_config(loaded)


def normalize_config(values: dict[str, Any]) -> dict[str, Any]:
    """Merge ``values`` over the defaults and validate the result.

    Raises:
        ConfigError: If a value has the wrong type.
    """
    config = dict(DEFAULT_CONFIG)
    config["taxonomies"] = list(DEFAULT_CONFIG["taxonomies"])
    config.update(values)
    validate_config(config)
    config.setdefault("ws_port", config["port"] + 1)
    return config


def validate_config(config: dict[str, Any]) -> None:
    """Check value types in a merged configuration mapping.

    Raises:
        ConfigError: On the first invalid value.
    """
    for key in _STRING_KEYS:
        value = config.get(key)
        if value is None:
            config[key] = ""
        elif not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a string, got {value!r}")
    for key in _INT_KEYS:
        if key not in config:
            continue
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigError(f"'{key}' must be a non-negative integer, got {value!r}")
    taxonomies = config.get("taxonomies")
    if not isinstance(taxonomies, list) or not all(
        isinstance(name, str) and name for name in taxonomies
    ):
        raise ConfigError(f"'taxonomies' must be a list of names, got {taxonomies!r}")
    for name in taxonomies:
        if not _TAXONOMY_NAME_RE.fullmatch(name):
            raise ConfigError(
                f"taxonomy name {name!r} may only hold letters, digits, '-' and '_'"
            )
        if name in RESERVED_TAXONOMY_NAMES:
            raise ConfigError(f"taxonomy name {name!r} is reserved for listing pages")
    if len(set(taxonomies)) != len(taxonomies):
        raise ConfigError(f"'taxonomies' lists a name twice: {taxonomies!r}")
    resolve_timezone(config)


def resolve_timezone(config: dict[str, Any]) -> tzinfo:
    """Return the tzinfo used for naive front-matter dates.

    Raises:
        ConfigError: If the zone name is unknown.
    """
    name = config.get("timezone") or "UTC"
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"unknown timezone {name!r}") from exc
