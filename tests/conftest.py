"""Pytest configuration and shared fixtures."""

import re
import socket
import socketserver
import threading
from typing import Dict, Optional

import pytest

from brackit_client.config.settings import Settings

SUCCESS = b"\x00"
ERROR = b"\x01"
NUL = b"\x00"

OP_QUERY = 0x01
OP_BEGIN = 0x02
OP_COMMIT = 0x03
OP_ROLLBACK = 0x04


class _DropConnection(Exception):
    """Raised by the evaluator to hang up on the client."""


class _FakeBrackitHandler(socketserver.BaseRequestHandler):
    """Speaks the client framing; one transaction buffer per connection."""

    def handle(self):
        server: FakeBrackitServer = self.server
        pending: Optional[Dict[str, str]] = None
        buffer = b""

        while True:
            while NUL not in buffer:
                data = self.request.recv(4096)
                if not data:
                    return
                buffer += data

            frame, buffer = buffer.split(NUL, 1)
            opcode, payload = frame[0], frame[1:].decode("utf-8")
            server.record(opcode, payload)

            rejection = server.take_rejection()
            if rejection is not None:
                self._reply(error=rejection)
            elif opcode == OP_BEGIN:
                pending = {}
                self._reply()
            elif opcode == OP_COMMIT:
                if pending is None:
                    self._reply(error="no transaction")
                else:
                    server.apply(pending)
                    pending = None
                    self._reply()
            elif opcode == OP_ROLLBACK:
                pending = None
                self._reply()
            elif opcode == OP_QUERY:
                try:
                    self._query(server, payload, pending)
                except _DropConnection:
                    return
            else:
                self._reply(error=f"bad opcode {opcode}")

    def _reply(self, output: bytes = b"", error: Optional[str] = None, status: Optional[bytes] = None):
        if error is not None:
            self.request.sendall(output + NUL + ERROR + error.encode("utf-8") + NUL)
        else:
            self.request.sendall(output + NUL + (status or SUCCESS))

    def _query(self, server, statement: str, pending: Optional[Dict[str, str]]):
        statement = statement.strip()

        match = re.fullmatch(r"(\d+)(?:\s*\+\s*(\d+))?", statement)
        if match:
            self._reply(str(sum(int(n) for n in match.groups() if n)).encode())
            return

        command, _, rest = statement.partition(" ")
        name, _, value = rest.partition(" ")

        if command in ("store", "mutate"):
            if command == "mutate" and server.read(name, pending) is None:
                self._reply(error=f"document {name} not found")
                return
            if pending is not None:
                pending[name] = value
            else:
                server.apply({name: value})
            self._reply()
        elif command == "read":
            current = server.read(name, pending)
            if current is None:
                self._reply(error=f"document {name} not found")
            else:
                self._reply(current.encode("utf-8"))
        elif command == "echo":
            self._reply(rest.encode("utf-8"))
        elif command == "repeat":
            # stream in several writes
            count = int(name)
            for _ in range(count):
                self.request.sendall(b"<x/>")
            self._reply()
        elif command == "fail":
            self._reply(error=rest or "failed")
        elif command == "partial":
            self._reply(b"<partial/>", error="evaluation aborted")
        elif command == "garbage":
            self._reply(b"<ok/>", status=b"\x07")
        elif command == "trailing":
            # a complete response followed by one nobody asked for
            self.request.sendall(b"<ok/>" + NUL + SUCCESS + b"stale" + NUL + SUCCESS)
        elif command == "drop":
            self.request.sendall(b"<cut")
            raise _DropConnection()
        else:
            self._reply(error=f"unknown statement: {statement}")


class FakeBrackitServer(socketserver.ThreadingTCPServer):
    """In-process server with a shared committed document store."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self):
        super().__init__(("127.0.0.1", 0), _FakeBrackitHandler)
        self.documents: Dict[str, str] = {}
        self.requests = []
        self.reject_next: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def host(self) -> str:
        return self.server_address[0]

    @property
    def port(self) -> int:
        return self.server_address[1]

    def record(self, opcode: int, payload: str) -> None:
        with self._lock:
            self.requests.append((opcode, payload))

    def take_rejection(self) -> Optional[str]:
        """Pop the diagnostic set in ``reject_next``, failing the next request."""
        with self._lock:
            rejection, self.reject_next = self.reject_next, None
            return rejection

    def apply(self, changes: Dict[str, str]) -> None:
        with self._lock:
            self.documents.update(changes)

    def read(self, name: str, pending: Optional[Dict[str, str]]) -> Optional[str]:
        if pending is not None and name in pending:
            return pending[name]
        with self._lock:
            return self.documents.get(name)


@pytest.fixture
def brackit_server():
    """Run a fake Brackit server on a free local port."""
    server = FakeBrackitServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def unused_port():
    """A local port with no listener."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def server_settings(brackit_server):
    """Settings pointing at the fake server."""
    return Settings(
        brackit_host=brackit_server.host,
        brackit_port=brackit_server.port,
        brackit_timeout=5.0,
    )


@pytest.fixture(autouse=True)
def reset_global_instances():
    """Reset the settings singleton before and after each test."""
    import brackit_client.config.settings
    brackit_client.config.settings._settings = None

    yield

    brackit_client.config.settings._settings = None


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as talking to a local socket server"
    )
