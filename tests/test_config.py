from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from folio.config import DEFAULT_CONFIG, load_config, normalize_config, resolve_timezone
from folio.errors import BuildError, ConfigError, DocumentError, ParseError


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path)
    assert config["output_dir"] == "public"
    assert config["paginate"] == 10
    assert config["taxonomies"] == ["tags", "categories"]
    assert config["ws_port"] == 4001
    assert config["taxonomies"] is not DEFAULT_CONFIG["taxonomies"]


def test_file_values_override_defaults(tmp_path):
    (tmp_path / "folio.yaml").write_text(
        "title: Blog\nport: 9000\ntaxonomies: [tags, series]\nauthor: Sam\n", encoding="utf-8"
    )
    config = load_config(tmp_path)
    assert config["title"] == "Blog"
    assert config["ws_port"] == 9001
    assert config["taxonomies"] == ["tags", "series"]
    assert config["author"] == "Sam"


def test_empty_file_and_null_strings(tmp_path):
    (tmp_path / "folio.yaml").write_text("description:\n", encoding="utf-8")
    assert load_config(tmp_path)["description"] == ""
    (tmp_path / "folio.yaml").write_text("", encoding="utf-8")
    assert load_config(tmp_path)["title"] == "Folio"


@pytest.mark.parametrize(
    "text",
    [
        "paginate: many\n",
        "paginate: -1\n",
        "port: true\n",
        "title: [a]\n",
        "taxonomies: tags\n",
        "taxonomies: ['']\n",
        "taxonomies: [page]\n",
        "taxonomies: [..]\n",
        "taxonomies: [tags/extra]\n",
        "taxonomies: [tags, tags]\n",
        "timezone: Nowhere/Land\n",
        "- not\n- a mapping\n",
        "title: [unclosed\n",
    ],
)
def test_invalid_config(tmp_path, text):
    (tmp_path / "folio.yaml").write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_resolve_timezone():
    assert resolve_timezone({"timezone": "UTC"}) is timezone.utc
    assert resolve_timezone({}) is timezone.utc
    tz = resolve_timezone({"timezone": "America/New_York"})
    assert datetime(2024, 1, 1, tzinfo=tz).utcoffset() == timedelta(hours=-5)


def test_normalize_config_keeps_explicit_ws_port():
    assert normalize_config({"port": 5000, "ws_port": 7000})["ws_port"] == 7000


def test_error_messages():
    error = ParseError("bad", path=Path("a.md"), line=3)
    assert str(error) == "a.md:3: bad"
    assert str(ParseError("bad", line=2)) == "line 2: bad"
    assert str(DocumentError("bad")) == "bad"
    attached = DocumentError("bad").with_path(Path("b.md"))
    assert str(attached) == "b.md: bad"
    assert attached.args == ("b.md: bad",)
    shifted = DocumentError("bad", line=2).shift_line(4)
    assert str(shifted) == "line 6: bad"
    assert shifted.args == ("line 6: bad",)
    fatal = BuildError(Path("out"), "disk full")
    assert str(fatal) == "out: disk full"
