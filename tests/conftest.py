from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import threading
import time
from urllib.parse import parse_qs, urlsplit

import pytest

from src.httpwrap.settings import GlobalSettings, settings

HTML_PAGE = b"<html><head><title> Lab Page </title></head><body>hi</body></html>"


@dataclass
class LocalServer:
    name: str
    url: str
    hits: list[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def record(self, path: str) -> None:
        with self.lock:
            self.hits.append(path)


class _Handler(BaseHTTPRequestHandler):
    server: _Server

    def log_message(self, format: str, *args: object) -> None:
        pass

    def _reply(self, status: int, body: bytes, headers: dict[str, str] | None = None) -> None:
        try:
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.send_header("X-Served-By", self.server.info.name)
            for name, value in (headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError):
            # client gave up (timeout or cancellation)
            pass


class OriginHandler(_Handler):
    def do_GET(self) -> None:
        self.server.info.record(self.path)
        parts = urlsplit(self.path)
        query = parse_qs(parts.query)

        if parts.path == "/slow":
            time.sleep(float(query.get("delay", ["0.5"])[0]))
            self._reply(200, b"slow")
        elif parts.path == "/trickle":
            self._trickle(int(query.get("size", ["8"])[0]), float(query.get("every", ["0.3"])[0]))
        elif parts.path == "/redirect":
            self._reply(302, b"", {"Location": "/ok"})
        elif parts.path == "/redirect-slow":
            self._reply(302, b"", {"Location": "/slow?delay=1.5"})
        elif parts.path == "/ok":
            self._reply(200, b"ok")
        elif parts.path == "/ua":
            self._reply(200, self.headers.get("User-Agent", "").encode("utf-8"))
        elif parts.path == "/header":
            name = query.get("name", [""])[0]
            self._reply(200, self.headers.get(name, "").encode("utf-8"))
        elif parts.path == "/html":
            self._reply(200, HTML_PAGE, {"Content-Type": "text/html; charset=utf-8"})
        else:
            self._reply(404, b"not found")

    def _trickle(self, size: int, every: float) -> None:
        self.send_response(200)
        self.send_header("Content-Length", str(size))
        self.send_header("X-Served-By", self.server.info.name)
        self.end_headers()
        try:
            for _ in range(size):
                time.sleep(every)
                self.wfile.write(b"x")
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            pass

    do_HEAD = do_GET

    def do_POST(self) -> None:
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        self.server.info.record(self.path)
        self._reply(200, body)


class ProxyHandler(_Handler):
    """Answers every proxied request itself, naming the proxy and the target."""

    def do_GET(self) -> None:
        self.server.info.record(self.path)
        ua = self.headers.get("User-Agent", "")
        self._reply(200, f"{self.path}\n{ua}".encode("utf-8"))


class _Server(ThreadingHTTPServer):
    daemon_threads = True
    info: LocalServer


def _serve(name: str, handler: type[_Handler]) -> Iterator[LocalServer]:
    server = _Server(("127.0.0.1", 0), handler)
    host, port = server.server_address[:2]
    server.info = LocalServer(name=name, url=f"http://{host}:{port}")
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.info
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def origin() -> Iterator[LocalServer]:
    yield from _serve("origin", OriginHandler)


@pytest.fixture
def proxy_a() -> Iterator[LocalServer]:
    yield from _serve("proxy-a", ProxyHandler)


@pytest.fixture
def proxy_b() -> Iterator[LocalServer]:
    yield from _serve("proxy-b", ProxyHandler)


@pytest.fixture
def registry() -> GlobalSettings:
    return GlobalSettings()


@pytest.fixture(autouse=True)
def _reset_global_settings() -> Iterator[None]:
    settings.reset()
    yield
    settings.reset()
