"""Exception hierarchy for Folio.

Per-document problems (``ParseError``, ``RenderError``) are recoverable: the
build records them and moves on to the next document. Everything else is
fatal for the build that raised it.

Classes:
    FolioError: Base class for every Folio error.
    DocumentError: An error tied to a single source document.
    ParseError: Malformed or missing front matter.
    RenderError: Malformed body markup.
    DuplicateDocumentError: Two documents share a path or output URL.
    ConfigError: Invalid project configuration.
    BuildError: Fatal I/O or template failure during a build.
"""

from __future__ import annotations

from pathlib import Path


class FolioError(Exception):
    """Base class for all errors raised by Folio."""


class DocumentError(FolioError):
    """Error raised while processing a single document.

    Attributes:
        message: Human-readable error message.
        path: Source file the error belongs to, when known.
        line: 1-based line number within the source file, when known.
    """

    def __init__(self, message: str, path: Path | None = None, line: int | None = None):
        self.message = message
        self.path = path
        self.line = line
        super().__init__(str(self))

    def shift_line(self, offset: int) -> DocumentError:
        """Move the line number by ``offset``, e.g. from body to file lines."""
        if self.line is not None and offset:
            self.line += offset
            self.args = (str(self),)
        return self

    def with_path(self, path: Path) -> DocumentError:
        """Attach a source path if the error does not carry one yet."""
        if self.path is None:
            self.path = path
            self.args = (str(self),)
        return self

    def __str__(self) -> str:
        location = ""
        if self.path is not None:
            location = str(self.path)
            if self.line is not None:
                location += f":{self.line}"
            location += ": "
        elif self.line is not None:
            location = f"line {self.line}: "
        return f"{location}{self.message}"


class ParseError(DocumentError):
    """Front matter is missing, unterminated, or holds an invalid value."""


class RenderError(DocumentError):
    """Body markup cannot be rendered (e.g. an unterminated code fence)."""


class DuplicateDocumentError(FolioError):
    """Two documents share a source path or resolve to the same URL."""


class ConfigError(FolioError):
    """The project configuration file is unreadable or invalid."""


class BuildError(FolioError):
    """Fatal error that aborts the whole build.

    Attributes:
        source_path: File or directory involved in the failure.
        message: Human-readable error message.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")
