"""
pytest plugin: an embedded server per test.

Installed through the ``pytest11`` entry point, so any project that depends
on embedhttp gets the fixture without touching conftest.py:

    def test_client(embedded_http_server):
        embedded_http_server.add_handler("/ping", lambda req, resp: resp.set_body("pong"))
        embedded_http_server.start()
        assert my_client(embedded_http_server.url("/ping")) == "pong"

The fixture yields an UNSTARTED server so the test can register handlers
first. It is closed at teardown whether or not the test started it.
"""

from typing import Iterator

import pytest

from .config import ServerConfig
from .server import EmbeddedHttpServer


@pytest.fixture
def embedded_http_server_config() -> ServerConfig:
    """Override in a conftest.py to change the fixture server's settings."""
    return ServerConfig(timeout=5.0)


@pytest.fixture
def embedded_http_server(embedded_http_server_config: ServerConfig) -> Iterator[EmbeddedHttpServer]:
    server = EmbeddedHttpServer(embedded_http_server_config)
    yield server
    server.close()
