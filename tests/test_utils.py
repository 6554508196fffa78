from datetime import date
from pathlib import Path

from folio.html_utils import absolutize_html_urls, join_root_url, strip_tags
from folio.utils import (
    ensure_clean_dir,
    extract_date_from_name,
    first_paragraph,
    is_html,
    is_ignored,
    is_markdown,
    slugify,
    strip_date_prefix,
    titleize,
)


def test_slugify():
    assert slugify("Hello World!") == "hello-world"
    assert slugify("1-2-3-go") == "1-2-3-go"
    assert slugify("2019-01-07-Hello") == "2019-01-07-hello"
    assert slugify("Café_Crème") == "café-crème"
    assert slugify("日本語") == "日本語"
    assert slugify("C++ & Go") == "c-go"
    assert slugify("!!!") == "index"
    assert slugify("!!!", default="") == ""


def test_titleize_and_date_prefix():
    assert titleize("2024-01-15-hello_world.md") == "Hello World"
    assert titleize("---.md") == "Untitled"
    assert strip_date_prefix("2024-01-15-post") == "post"
    assert strip_date_prefix("v1-2-3") == "v1-2-3"
    assert strip_date_prefix("1-2-3-go") == "1-2-3-go"


def test_extract_date_from_name():
    assert extract_date_from_name("2024-01-15-post") == date(2024, 1, 15)
    assert extract_date_from_name("2024-13-40-post") is None
    assert extract_date_from_name("post") is None
    assert extract_date_from_name("1-2-3-go") is None


def test_first_paragraph_skips_non_prose():
    text = "# Title\n\n![img](a.png)\n\n```\ncode\n\nmore code\n```\n\n<div>x</div>\n\nReal text\nline two\n\nLater"
    assert first_paragraph(text) == "Real text\nline two"
    assert first_paragraph("# Only heading") == ""


def test_file_classification():
    assert is_markdown(Path("a.MD"))
    assert is_markdown(Path("a.markdown"))
    assert is_html(Path("a.htm"))
    assert not is_markdown(Path("a.txt"))
    assert is_ignored(Path("_drafts/a.md"))
    assert is_ignored(Path("posts/.a.md"))
    assert not is_ignored(Path("posts/a.md"))


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "out"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "f.txt").write_text("x", encoding="utf-8")
    ensure_clean_dir(target)
    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_join_root_url():
    assert join_root_url("", "about/") == "/about/"
    assert join_root_url("https://example.com/", "/about/") == "https://example.com/about/"


def test_absolutize_html_urls():
    html = '<a href="/a/">A</a><img src="//cdn/x.png"><a href="#top">t</a><a href="https://x.org/">x</a>'
    result = absolutize_html_urls(html, "https://example.com")
    assert 'href="https://example.com/a/"' in result
    assert 'src="//cdn/x.png"' in result
    assert 'href="#top"' in result
    assert 'href="https://x.org/"' in result
    assert absolutize_html_urls(html, "") == html


def test_strip_tags():
    assert strip_tags("<p>Hello <b>world</b></p>\n<p>Again</p>") == "Hello world Again"
