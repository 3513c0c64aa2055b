"""
pytest configuration and fixtures.
"""

import socket
from typing import Generator

import httpx
import pytest

from embedhttp import EmbeddedHttpServer, ServerConfig
from embedhttp.http import Headers

# Same fixtures the installed plugin provides, so the suite also runs from a
# plain checkout where the pytest11 entry point is not registered.
from embedhttp.pytest_plugin import embedded_http_server, embedded_http_server_config  # noqa: F401


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request head."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"X-Tag: one\r\n"
        b"x-tag: two\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request head announcing a JSON body."""
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: 45\r\n"
    )


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(host="127.0.0.1", timeout=5.0)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def server(config: ServerConfig) -> Generator[EmbeddedHttpServer, None, None]:
    """Unstarted server, closed at teardown."""
    srv = EmbeddedHttpServer(config)
    yield srv
    srv.close()


@pytest.fixture
def client() -> Generator[httpx.Client, None, None]:
    """HTTP client that ignores proxy settings from the environment."""
    with httpx.Client(timeout=5.0, trust_env=False) as c:
        yield c


def raw_exchange(address, data: bytes, timeout: float = 5.0) -> bytes:
    """
    Send raw bytes to the server and return everything it answers until it
    closes the connection.
    """
    with socket.create_connection(address, timeout=timeout) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def split_response(raw: bytes):
    """Split a raw response into (status_code, Headers, body bytes)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("iso-8859-1").split("\r\n")
    status_code = int(lines[0].split(" ")[1])
    headers = Headers()
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers.add(name, value.strip())
    return status_code, headers, body


@pytest.fixture
def raw_http():
    """
    Send raw request bytes, get back (status_code, headers, body).

    For requests httpx will not produce: bad request lines, chunked bodies,
    Expect: 100-continue.
    """
    def send(address, data: bytes, raw: bool = False):
        answer = raw_exchange(address, data)
        return answer if raw else split_response(answer)
    return send
