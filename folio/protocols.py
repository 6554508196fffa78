"""Protocol definitions for Folio.

Renderers are looked up by structural type so that new body formats can be
registered without touching the loader.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .renderers import Heading


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for rendering a document body to HTML.

    Attributes:
        source_type: Identifier of the handled format (``"markdown"``, ``"html"``).
    """

    source_type: str

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer handles the given source file."""
        ...

    @abstractmethod
    def render(self, content: str, folder: str) -> tuple[str, list[Heading]]:
        """Render body text to HTML.

        Args:
            content: Body text (front matter already removed).
            folder: Folder of the document relative to the Content Store.

        Returns:
            Tuple of (HTML, headings for a table of contents).

        Raises:
            RenderError: If the body markup is malformed.
        """
        ...
