from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass

from .content import Document
from .errors import DuplicateDocumentError
from .utils import slugify


def label_key(label: str) -> str:
    """Identity of a taxonomy label: labels differing only in case match."""
    return label.casefold()


def sort_key(document: Document) -> tuple[float, str]:
    """Order key: newest first, ties broken by source path."""
    return (-document.date.timestamp(), document.rel_path)


class DocumentCollection(Sequence[Document]):
    """Documents ordered by date descending, then by path.

    Raises DuplicateDocumentError when two documents share a source path or
    an output URL.
    """

    def __init__(self, documents: Iterable[Document] = ()):
        items: list[Document] = []
        paths: set[str] = set()
        urls: dict[str, str] = {}
        for document in documents:
            if document.rel_path in paths:
                raise DuplicateDocumentError(f"duplicate document path: {document.rel_path}")
            if document.url in urls:
                raise DuplicateDocumentError(
                    f"{document.rel_path} and {urls[document.url]} both map to {document.url}"
                )
            paths.add(document.rel_path)
            urls[document.url] = document.rel_path
            items.append(document)
        self._documents = sorted(items, key=sort_key)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return DocumentCollection(self._documents[item])
        return self._documents[item]

    def published(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if not d.draft)

    def drafts(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.draft)

    def section(self, name: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.section == name)

    def with_label(self, taxonomy: str, label: str) -> DocumentCollection:
        wanted = label_key(label)
        return DocumentCollection(
            d
            for d in self._documents
            if any(label_key(value) == wanted for value in d.taxonomies.get(taxonomy, []))
        )

    def with_tag(self, tag: str) -> DocumentCollection:
        return self.with_label("tags", tag)

    def latest(self, count: int = 5) -> DocumentCollection:
        return self[:count]

    def paginate(self, size: int) -> list[DocumentCollection]:
        """Split into pages of ``size`` documents; ``size <= 0`` keeps one page.

        An empty collection still yields one (empty) page so that listings
        are always written.
        """
        if size <= 0 or len(self._documents) <= size:
            return [self]
        return [self[start : start + size] for start in range(0, len(self._documents), size)]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


@dataclass
class Term:
    """One label of a taxonomy and the documents carrying it."""

    label: str
    slug: str
    documents: DocumentCollection

    def __len__(self) -> int:
        return len(self.documents)


class TaxonomyIndex(Mapping[str, Term]):
    """Mapping of term slug to Term for one taxonomy.

    Labels that differ only in case (``Git`` and ``git``) share a term; the
    first spelling met in collection order is displayed. Every other label
    gets its own term. When two labels slugify alike (``C`` and ``C++``),
    the later one in label order gets the first free numeric suffix
    (``c-2``). Iteration follows the labels alphabetically, ignoring case.
    """

    def __init__(self, name: str, documents: Iterable[Document]):
        self.name = name
        collection = documents if isinstance(documents, DocumentCollection) else DocumentCollection(documents)
        labels: dict[str, str] = {}
        members: dict[str, list[Document]] = {}
        for document in collection:
            for label in document.taxonomies.get(name, []):
                key = label_key(label)
                labels.setdefault(key, label)
                bucket = members.setdefault(key, [])
                if not bucket or bucket[-1] is not document:
                    bucket.append(document)

        ordered = sorted(labels, key=lambda k: (labels[k].lower(), labels[k], k))
        natural = {key: slugify(labels[key], default="term") for key in ordered}
        slugs: dict[str, str] = {}
        for key in ordered:
            if natural[key] not in slugs.values():
                slugs[key] = natural[key]
        taken = set(slugs.values())
        for key in ordered:
            if key not in slugs:
                counter = 2
                while f"{natural[key]}-{counter}" in taken:
                    counter += 1
                slugs[key] = f"{natural[key]}-{counter}"
                taken.add(slugs[key])

        self._terms: dict[str, Term] = {}
        self._by_key: dict[str, Term] = {}
        for key in ordered:
            term = Term(label=labels[key], slug=slugs[key], documents=DocumentCollection(members[key]))
            self._terms[slugs[key]] = term
            self._by_key[key] = term

    def __getitem__(self, key: str) -> Term:
        return self._terms[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._terms)

    def __len__(self) -> int:
        return len(self._terms)

    def terms(self) -> list[Term]:
        return list(self._terms.values())

    def term_for(self, label: str) -> Term | None:
        """Term a label belongs to, or None if no document carries it."""
        return self._by_key.get(label_key(label))

    def labels_of(self, document: Document) -> list[Term]:
        """Terms of this taxonomy carried by ``document``, in its own order."""
        result: list[Term] = []
        for label in document.taxonomies.get(self.name, []):
            term = self.term_for(label)
            if term is not None and term not in result:
                result.append(term)
        return result

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyIndex({self.name!r}, {len(self._terms)} terms)"
