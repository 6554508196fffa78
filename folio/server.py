"""Development server for Folio.

Builds the site into a staging directory, swaps it into place and serves it
over HTTP. Source changes trigger a rebuild and a reload message pushed to
open browser tabs over a websocket.

Key classes:
- DevServer: Owns the HTTP server, the reload broadcaster and the watcher.
- _ReloadBroadcaster: Websocket server telling browsers to reload.
- _ReloadHandler: HTTP handler that injects the reload script into HTML.
- _ChangeHandler: watchdog handler that triggers rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
import shutil
import threading
import time
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import click
import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import BuildResult, build_site, resolve_content_dir
from .config import CONFIG_FILENAME, load_config
from .errors import FolioError

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = json.dumps({"type": "reload"})

RELOAD_SCRIPT_TEMPLATE = """<script>
new WebSocket("ws://" + window.location.hostname + ":{ws_port}").addEventListener(
  "message", (event) => {{ if (JSON.parse(event.data).type === "reload") window.location.reload(); }}
);
</script>
"""


def inject_reload_script(html: str, script: str) -> str:
    """Insert ``script`` before ``</body>``, or append it."""
    head, marker, tail = html.rpartition("</body>")
    if not marker:
        return html + script
    return head + script + marker + tail


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves the output directory; HTML responses get the reload script."""

    reload_script = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-store")
        super().end_headers()

    def log_message(self, format, *args):  # noqa: A002 - signature from the base class
        logger.debug("%s - %s", self.address_string(), format % args)

    def send_head(self):
        target = Path(self.translate_path(self.path))
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            self.send_error(HTTPStatus.NOT_FOUND)
            return None
        if target.suffix != ".html":
            return super().send_head()
        body = inject_reload_script(target.read_text(encoding="utf-8"), self.reload_script)
        payload = body.encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)
        return None


class _ReloadBroadcaster:
    """Websocket server that pushes reload messages to connected browsers.

    Runs its own event loop on a background thread; ``broadcast`` may be
    called from any thread.
    """

    def __init__(self, port: int):
        self.port = port
        self.clients: set = set()
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._serve())
        except OSError as exc:
            click.echo(f"Live reload unavailable on port {self.port}: {exc}", err=True)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)

    async def _serve(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._register, "0.0.0.0", self.port):
            await asyncio.Future()

    async def _register(self, websocket):
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def broadcast(self, message: str = RELOAD_MESSAGE) -> None:
        if self.loop.is_running():
            asyncio.run_coroutine_threadsafe(self.send_all(message), self.loop)

    async def send_all(self, message: str) -> None:
        closed = set()
        for client in list(self.clients):
            try:
                await client.send(message)
            except websockets.ConnectionClosed:
                closed.add(client)
        self.clients -= closed


class DevServer:
    """Development server with live reload.

    Attributes:
        project_root: Root directory of the project.
        config: Site configuration.
        output_dir: Directory being served.
        http_port: Port of the HTTP server.
        ws_port: Port of the websocket server.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        self.project_root = project_root
        self.config = load_config(project_root)
        self.output_dir = project_root / self.config["output_dir"]
        self.staging_dir = self.output_dir.with_name(f"{self.output_dir.name}.staging")
        self.http_port = http_port or self.config["port"]
        if ws_port is None:
            ws_port = self.http_port + 1 if http_port else self.config["ws_port"]
        self.ws_port = ws_port
        self.reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=ws_port)
        self.base_url = f"http://localhost:{self.http_port}"
        self.reloader = _ReloadBroadcaster(ws_port)
        self._observer: Observer | None = None
        self._build_lock = threading.Lock()
        self._signature: tuple | None = None
        self._dirty = False

    def watch_paths(self) -> list[Path]:
        """Directories and files whose changes trigger a rebuild."""
        paths = [resolve_content_dir(self.project_root, self.config)]
        for key in ("layouts_dir", "static_dir"):
            candidate = self.project_root / self.config[key]
            if candidate.is_dir() and candidate not in paths:
                paths.append(candidate)
        config_file = self.project_root / CONFIG_FILENAME
        if config_file.exists():
            paths.append(config_file)
        return paths

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        _report(self.build(include_drafts))
        self._signature = self.signature()
        for target in (self._serve_http, self.reloader.run):
            threading.Thread(target=target, daemon=True).start()
        self._watch(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        self.reloader.stop()

    def build(self, include_drafts: bool) -> BuildResult:
        """Build into the staging directory and swap it into place."""
        if self.staging_dir.exists():
            shutil.rmtree(self.staging_dir)
        result = build_site(
            self.project_root,
            output_dir=self.staging_dir,
            include_drafts=include_drafts,
            base_url=self.base_url,
            config=self.config,
        )
        if self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        os.replace(self.staging_dir, self.output_dir)
        result.output_dir = self.output_dir
        return result

    def rebuild(self, include_drafts: bool) -> bool:
        """Rebuild if the sources changed since the last build.

        A change reported while another rebuild runs marks the sources
        dirty; the running rebuild then goes round again before it returns.

        Returns:
            True if a rebuild ran in this call.
        """
        self._dirty = True
        rebuilt = False
        while self._dirty:
            if not self._build_lock.acquire(blocking=False):
                return rebuilt
            try:
                while self._dirty:
                    self._dirty = False
                    rebuilt = self._rebuild_if_changed(include_drafts) or rebuilt
            finally:
                self._build_lock.release()
        return rebuilt

    def _rebuild_if_changed(self, include_drafts: bool) -> bool:
        current = self.signature()
        if current == self._signature:
            return False
        self._signature = current
        click.echo("Change detected; rebuilding...")
        try:
            self.config = load_config(self.project_root)
            _report(self.build(include_drafts))
        except FolioError as exc:
            click.echo(click.style(f"Build failed: {exc}", fg="red"), err=True)
        self.reloader.broadcast()
        return True

    def signature(self) -> tuple:
        """Path, mtime and size of every watched file."""
        entries: list[tuple] = []
        for root in self.watch_paths():
            files = [root] if root.is_file() else sorted(p for p in root.rglob("*") if p.is_file())
            for path in files:
                if self.is_output(path):
                    continue
                try:
                    stat = path.stat()
                except OSError:
                    continue
                entries.append((str(path), stat.st_mtime_ns, stat.st_size))
        return tuple(entries)

    def is_output(self, path: Path) -> bool:
        return path.is_relative_to(self.output_dir) or path.is_relative_to(self.staging_dir)

    def _serve_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type("_Handler", (_ReloadHandler,), {"reload_script": self.reload_script})
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        click.echo(f"Serving {self.output_dir} at {self.base_url}")
        ThreadingHTTPServer(("", self.http_port), handler).serve_forever()

    def _watch(self, include_drafts: bool) -> None:  # pragma: no cover - integration path
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        for path in self.watch_paths():
            if path.is_dir():
                observer.schedule(handler, str(path), recursive=True)
        # folio.yaml may appear later, so watch the root itself too.
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory or self.server.is_output(Path(event.src_path)):
            return
        self.server.rebuild(self.include_drafts)


def _report(result: BuildResult) -> None:
    for failure in result.failures:
        click.echo(click.style(f"  {failure}", fg="yellow"), err=True)
    click.echo(f"Built {len(result.documents)} documents into {result.output_dir}")
