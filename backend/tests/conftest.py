from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from manifest_monitor.services.logger_service import LoggerService


@dataclass
class Route:
    body: bytes
    status: int = 200
    content_type: str = "application/octet-stream"
    delay: float = 0.0


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        path = self.path.split("?", 1)[0]
        with self.server.lock:
            self.server.hits[path] += 1
            route = self.server.routes.get(path)

        if route is None:
            route = Route(body=b"not found", status=404, content_type="text/plain")
        if route.delay:
            time.sleep(route.delay)

        self.send_response(route.status)
        self.send_header("Content-Type", route.content_type)
        self.send_header("Content-Length", str(len(route.body)))
        self.end_headers()
        self.wfile.write(route.body)


class LocalServer:
    def __init__(self, httpd: ThreadingHTTPServer):
        self.httpd = httpd
        host, port = httpd.server_address
        self.base_url = f"http://{host}:{port}"

    def url(self, path: str) -> str:
        return self.base_url + path

    def set(self, path: str, body: str | bytes, status: int = 200, delay: float = 0.0,
            content_type: str = "application/octet-stream") -> str:
        if isinstance(body, str):
            body = body.encode("utf-8")
        with self.httpd.lock:
            self.httpd.routes[path] = Route(body=body, status=status, content_type=content_type, delay=delay)
        return self.url(path)

    def hits(self, path: str) -> int:
        with self.httpd.lock:
            return self.httpd.hits[path]


@pytest.fixture
def http_server() -> LocalServer:
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.daemon_threads = True
    httpd.routes = {}
    httpd.hits = Counter()
    httpd.lock = threading.Lock()
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield LocalServer(httpd)
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.fixture
def event_log(tmp_path) -> LoggerService:
    return LoggerService(tmp_path / "logs")
