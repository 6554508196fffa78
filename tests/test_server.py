import asyncio
from pathlib import Path
from types import SimpleNamespace

import websockets

from folio.server import DevServer, _ChangeHandler, _ReloadBroadcaster, inject_reload_script


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def create_project(tmp_path: Path) -> Path:
    content = tmp_path / "content"
    content.mkdir()
    (content / "hello.md").write_text("---\ntitle: Hello\ndate: 2019-01-07\n---\nHi\n", encoding="utf-8")
    return tmp_path


def test_port_defaults_and_overrides(tmp_path):
    server = DevServer(tmp_path)
    assert server.http_port == 4000
    assert server.ws_port == 4001

    server = DevServer(tmp_path, http_port=5055)
    assert server.ws_port == 5056

    explicit = DevServer(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert ":6000" in explicit.reload_script


def test_ports_from_config(tmp_path):
    (tmp_path / "folio.yaml").write_text("port: 8000\n", encoding="utf-8")
    server = DevServer(tmp_path)
    assert server.http_port == 8000
    assert server.ws_port == 8001


def test_inject_reload_script():
    assert inject_reload_script("<body>x</body>", "<s>") == "<body>x<s></body>"
    assert inject_reload_script("plain", "<s>") == "plain<s>"


def test_build_swaps_staging_into_place(tmp_path):
    root = create_project(tmp_path)
    server = DevServer(root, http_port=4321)
    (server.output_dir).mkdir()
    (server.output_dir / "stale.html").write_text("old", encoding="utf-8")
    result = server.build(include_drafts=False)
    assert result.output_dir == server.output_dir
    assert (server.output_dir / "hello" / "index.html").exists()
    assert not (server.output_dir / "stale.html").exists()
    assert not server.staging_dir.exists()
    assert result.config["base_url"] == "http://localhost:4321"


def test_rebuild_only_when_sources_change(monkeypatch, tmp_path):
    root = create_project(tmp_path)
    server = DevServer(root)
    calls = []
    monkeypatch.setattr(
        "folio.server.DevServer.build",
        lambda self, include_drafts: calls.append("built")
        or SimpleNamespace(failures=[], documents=[], output_dir=self.output_dir),
    )
    server.reloader.broadcast = lambda: calls.append("reloaded")

    server._signature = server.signature()
    assert server.rebuild(include_drafts=False) is False
    (root / "content" / "new.md").write_text("---\ntitle: New\ndate: 2020-01-01\n---\n", encoding="utf-8")
    assert server.rebuild(include_drafts=False) is True
    assert calls == ["built", "reloaded"]
    assert server.rebuild(include_drafts=False) is False


def test_change_during_rebuild_triggers_another_build(monkeypatch, tmp_path):
    root = create_project(tmp_path)
    server = DevServer(root)
    server._signature = server.signature()
    calls = []
    nested = []

    def fake_build(self, include_drafts):
        calls.append("built")
        if len(calls) == 1:
            (root / "content" / "late.md").write_text(
                "---\ntitle: Late\ndate: 2020-01-01\n---\n", encoding="utf-8"
            )
            nested.append(self.rebuild(include_drafts))
        return SimpleNamespace(failures=[], documents=[], output_dir=self.output_dir)

    monkeypatch.setattr("folio.server.DevServer.build", fake_build)
    server.reloader.broadcast = lambda: calls.append("reloaded")

    (root / "content" / "new.md").write_text("---\ntitle: New\ndate: 2020-01-01\n---\n", encoding="utf-8")
    assert server.rebuild(include_drafts=False) is True
    assert nested == [False]
    assert calls == ["built", "reloaded", "built", "reloaded"]
    assert server._signature == server.signature()


def test_rebuild_reports_fatal_errors(monkeypatch, tmp_path, capsys):
    root = create_project(tmp_path)
    server = DevServer(root)
    server.reloader.broadcast = lambda: None
    (root / "folio.yaml").write_text("paginate: lots\n", encoding="utf-8")
    assert server.rebuild(include_drafts=False) is True
    assert "Build failed" in capsys.readouterr().err


def test_signature_ignores_output(tmp_path):
    root = create_project(tmp_path)
    server = DevServer(root)
    before = server.signature()
    server.output_dir.mkdir()
    (server.output_dir / "index.html").write_text("x", encoding="utf-8")
    assert server.signature() == before
    assert any(entry[0].endswith("hello.md") for entry in before)


def test_change_handler_skips_output_and_directories(tmp_path):
    server = DevServer(tmp_path)
    called = []
    server.rebuild = lambda include_drafts: called.append(include_drafts)
    handler = _ChangeHandler(server, include_drafts=True)

    handler.on_any_event(DummyEvent(str(server.output_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(server.staging_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "content"), is_directory=True))
    assert called == []

    handler.on_any_event(DummyEvent(str(tmp_path / "content" / "hello.md")))
    assert called == [True]


def test_watch_paths(tmp_path):
    root = create_project(tmp_path)
    (root / "layouts").mkdir()
    (root / "folio.yaml").write_text("title: T\n", encoding="utf-8")
    paths = DevServer(root).watch_paths()
    assert paths == [root / "content", root / "layouts", root / "folio.yaml"]


def test_send_all_drops_closed_clients():
    reloader = _ReloadBroadcaster(4001)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class ClosedWS:
        async def send(self, msg):
            raise websockets.ConnectionClosedOK(None, None)

    good = GoodWS()
    closed = ClosedWS()
    reloader.clients = {good, closed}
    asyncio.run(reloader.send_all("hello"))
    assert good.messages == ["hello"]
    assert reloader.clients == {good}


def test_broadcast_skipped_when_loop_idle(monkeypatch):
    reloader = _ReloadBroadcaster(4001)
    called = []
    monkeypatch.setattr(
        "folio.server.asyncio.run_coroutine_threadsafe", lambda *args: called.append(args)
    )
    reloader.broadcast()
    assert called == []
