"""
pytest configuration and fixtures.
"""

import json
import socket
import threading
from typing import Generator, List, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from adbenabler import CommandServer, ServerConfig
from adbenabler.collaborators import AutomationController, NotificationSink
from adbenabler.store import MemorySecretStore


SECRET = "s3cr3t-pairing-key"


def build_request(
    path: str,
    payload=None,
    method: str = "POST",
    body: Optional[bytes] = None,
    extra_headers: str = "",
) -> bytes:
    """Raw request bytes. payload is JSON-encoded unless body is given."""
    if body is None:
        body = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: localhost\r\n"
        f"Content-Type: application/json\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"{extra_headers}"
        f"\r\n"
    ).encode("utf-8") + body


def read_all(sock: socket.socket) -> bytes:
    """Read until the peer closes."""
    chunks = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """Send raw bytes and read until the server closes the connection."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as s:
        s.sendall(data)
        return read_all(s)


def parse_response(raw: bytes) -> Tuple[int, dict, str]:
    """Split a raw response into (status code, headers, body text)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    status = int(lines[0].split(" ", 2)[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()
    return status, headers, body.decode("utf-8")


def post(port: int, path: str, payload=None, **kwargs) -> Tuple[int, str]:
    """POST a JSON payload; returns (status code, body text)."""
    status, _, body = parse_response(send_raw(port, build_request(path, payload, **kwargs)))
    return status, body


class RecordingAutomation(AutomationController):
    """Counts open_settings_ui() calls; raises `error` if set."""

    def __init__(self, error: Optional[Exception] = None):
        self.calls = 0
        self.error = error
        self._lock = threading.Lock()

    def open_settings_ui(self) -> None:
        with self._lock:
            self.calls += 1
        if self.error is not None:
            raise self.error


class RecordingSink(NotificationSink):
    """Keeps every published (password_type, password) pair."""

    def __init__(self):
        self.published: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def publish(self, password_type: str, password: str) -> None:
        with self._lock:
            self.published.append((password_type, password))


@pytest.fixture
def sample_data_request() -> bytes:
    """Sample /data request carrying a password."""
    return build_request(
        "/data",
        {"secretKey": SECRET, "passwordType": "pin", "password": "1234"},
    )


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        read_timeout=5.0,
        accept_poll_interval=0.1,
        log_level="WARNING",
    )


@pytest.fixture
def store() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def automation() -> RecordingAutomation:
    return RecordingAutomation()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def server(config, store, automation, sink) -> Generator[CommandServer, None, None]:
    """A running CommandServer on a free port with recording collaborators."""
    srv = CommandServer(config, store=store, automation=automation, sink=sink)
    srv.start()

    yield srv

    srv.stop()
    srv.wait_for_handlers(timeout=5.0)
