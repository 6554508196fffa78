"""Folio static content publisher.

Folio turns a directory of Markdown and HTML documents with YAML front matter
into a static site: one page per document, a reverse-chronological listing,
tag and category indexes, and RSS/sitemap feeds.

The main entry point is the CLI module, which provides commands for building
the site, running the development server and creating new documents.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
