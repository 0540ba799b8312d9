import gzip
import json
import logging
import socket
import ssl
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import trustme

from packetman.storage.kv import KeyValueStore
from packetman.storage.paths import HOME_ENV
from packetman.storage.workspace import WorkspaceStore

BINARY_BODY = b"\xff\xfe\x00caf\xe9"
GZIP_PLAIN = b"packetman " * 240
GZIP_BODY = gzip.compress(GZIP_PLAIN)


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _handle(self):
        length = int(self.headers.get("Content-Length") or 0)
        received = self.rfile.read(length) if length else b""

        if self.path == "/binary":
            self._reply(200, "OK", BINARY_BODY, "application/octet-stream")
        elif self.path == "/gzip":
            self._reply(200, "OK", GZIP_BODY, "text/plain", {"Content-Encoding": "gzip"})
        elif self.path == "/missing":
            self._reply(404, "Not Found", b"nope", "text/plain")
        elif self.path == "/unicode":
            self._reply(200, "OK", "héllo ☃".encode("utf-8"), "text/plain")
        else:
            payload = {
                "method": self.command,
                "path": self.path,
                "headers": dict(self.headers.items()),
                "body": received.decode("utf-8"),
                "has_length": "Content-Length" in self.headers,
            }
            self._reply(
                200, "OK", json.dumps(payload).encode("utf-8"), "application/json"
            )

    def _reply(self, status, reason, body, content_type, extra=None):
        self.send_response(status, reason)
        self.send_header("Content-Type", content_type)
        for name, value in (extra or {}).items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.send_header("X-Test", "packetman")
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = _handle


@pytest.fixture(autouse=True)
def packetman_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv(HOME_ENV, str(home))
    monkeypatch.setenv("EDITOR", "true")
    return home


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    logger = logging.getLogger("packetman")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def kv(tmp_path):
    return KeyValueStore(tmp_path / "workspace")


@pytest.fixture
def store(kv):
    return WorkspaceStore(kv)


@pytest.fixture(scope="session")
def http_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture
def refused_url():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}/"


@pytest.fixture
def silent_url():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    yield f"http://127.0.0.1:{sock.getsockname()[1]}/"
    sock.close()


@pytest.fixture(scope="session")
def https_server():
    ca = trustme.CA()
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    ca.issue_cert("127.0.0.1").configure_cert(context)
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    server.socket = context.wrap_socket(server.socket, server_side=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"https://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()
