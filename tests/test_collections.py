from datetime import datetime, timedelta, timezone

import pytest

from folio.collections import DocumentCollection, TaxonomyIndex
from folio.errors import DuplicateDocumentError


class FakeDocument:
    def __init__(self, rel_path, date=None, tags=None, categories=None, draft=False, section="", url=None):
        self.rel_path = rel_path
        self.date = date or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.draft = draft
        self.section = section
        self.url = url or "/" + rel_path.rsplit(".", 1)[0] + "/"
        self.taxonomies = {"tags": tags or [], "categories": categories or []}
        self.title = rel_path


def day(n):
    return datetime(2024, 1, n, tzinfo=timezone.utc)


def test_collection_orders_newest_first_with_path_ties():
    docs = DocumentCollection(
        [
            FakeDocument("b.md", day(2)),
            FakeDocument("c.md", day(3)),
            FakeDocument("z.md", day(1)),
            FakeDocument("a.md", day(2)),
        ]
    )
    assert [d.rel_path for d in docs] == ["c.md", "a.md", "b.md", "z.md"]


def test_ordering_compares_instants_across_zones():
    plus_two = timezone(timedelta(hours=2))
    docs = DocumentCollection(
        [
            FakeDocument("utc.md", datetime(2024, 1, 1, 11, tzinfo=timezone.utc)),
            FakeDocument("paris.md", datetime(2024, 1, 1, 12, tzinfo=plus_two)),
        ]
    )
    # 12:00+02:00 is 10:00 UTC, older than 11:00 UTC.
    assert [d.rel_path for d in docs] == ["utc.md", "paris.md"]


def test_collection_rejects_duplicates():
    with pytest.raises(DuplicateDocumentError):
        DocumentCollection([FakeDocument("a.md"), FakeDocument("a.md", url="/other/")])
    with pytest.raises(DuplicateDocumentError):
        DocumentCollection([FakeDocument("a.md", url="/x/"), FakeDocument("b.md", url="/x/")])


def test_filters_and_latest():
    docs = DocumentCollection(
        [
            FakeDocument("posts/a.md", day(2), section="posts", tags=["Python"]),
            FakeDocument("posts/b.md", day(3), section="posts", draft=True),
            FakeDocument("docs/c.md", day(1), section="docs", tags=["python", "go"]),
        ]
    )
    assert [d.rel_path for d in docs.section("posts")] == ["posts/b.md", "posts/a.md"]
    assert [d.rel_path for d in docs.published()] == ["posts/a.md", "docs/c.md"]
    assert [d.rel_path for d in docs.drafts()] == ["posts/b.md"]
    assert [d.rel_path for d in docs.with_tag("python")] == ["posts/a.md", "docs/c.md"]
    assert len(docs.with_tag("")) == 0
    latest = docs.latest(1)
    assert isinstance(latest, DocumentCollection)
    assert latest[0].rel_path == "posts/b.md"


def test_paginate():
    docs = DocumentCollection(FakeDocument(f"{i:02d}.md", day(i + 1)) for i in range(5))
    pages = docs.paginate(2)
    assert [len(p) for p in pages] == [2, 2, 1]
    assert pages[0][0].rel_path == "04.md"
    assert docs.paginate(0) == [docs]
    assert docs.paginate(10) == [docs]
    assert len(DocumentCollection().paginate(3)) == 1


def test_taxonomy_index_groups_labels_ignoring_case():
    docs = DocumentCollection(
        [
            FakeDocument("a.md", day(3), tags=["Git", "news"]),
            FakeDocument("b.md", day(2), tags=["git"]),
            FakeDocument("c.md", day(1), tags=["Docker"]),
        ]
    )
    index = TaxonomyIndex("tags", docs)
    assert list(index) == ["docker", "git", "news"]
    assert index["git"].label == "Git"
    assert [d.rel_path for d in index["git"].documents] == ["a.md", "b.md"]
    assert len(index["news"]) == 1
    assert [t.slug for t in index.labels_of(docs[0])] == ["git", "news"]


def test_taxonomy_index_keeps_labels_that_slugify_alike():
    docs = DocumentCollection(
        [
            FakeDocument("a.md", day(3), tags=["C"]),
            FakeDocument("b.md", day(2), tags=["C++"]),
            FakeDocument("c.md", day(1), tags=["日本語", "!!!"]),
        ]
    )
    index = TaxonomyIndex("tags", docs)
    assert [(t.label, t.slug) for t in index.terms()] == [
        ("!!!", "term"),
        ("C", "c"),
        ("C++", "c-2"),
        ("日本語", "日本語"),
    ]
    assert [d.rel_path for d in index["c"].documents] == ["a.md"]
    assert [d.rel_path for d in index["c-2"].documents] == ["b.md"]
    assert [t.slug for t in index.labels_of(docs[2])] == ["日本語", "term"]
    assert index.term_for("c++") is index["c-2"]


def test_taxonomy_slug_suffix_skips_taken_slugs():
    index = TaxonomyIndex("tags", [FakeDocument("a.md", tags=["c", "c-2", "C#"])])
    assert {t.label: t.slug for t in index.terms()} == {"c": "c", "C#": "c-3", "c-2": "c-2"}


def test_document_listed_once_per_term():
    index = TaxonomyIndex("tags", [FakeDocument("a.md", tags=["Go", "go"])])
    assert len(index["go"].documents) == 1


def test_empty_taxonomy():
    index = TaxonomyIndex("categories", DocumentCollection([FakeDocument("a.md")]))
    assert len(index) == 0
    assert index.terms() == []
