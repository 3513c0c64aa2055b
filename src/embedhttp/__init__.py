"""
=============================================================================
EMBEDHTTP - Embeddable HTTP Server for Test Suites
=============================================================================

A process-local HTTP server that a test starts on an ephemeral port, fills
with path handlers and throws away again. It exists so code under test can
talk HTTP to something real without a network fixture.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    embedhttp/
    ├── __init__.py          # This file - package exports
    ├── server.py            # EmbeddedHttpServer facade
    ├── registry.py          # HandlerEntry / HandlerRegistry
    ├── auth.py              # Authenticator + Success/Failure/Retry
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # EmbedHttpError family
    ├── pytest_plugin.py     # embedded_http_server fixture
    ├── core/                # Transport
    │   ├── socket_server.py # Listener, routes, accept loop
    │   ├── connection.py    # One client socket
    │   └── exchange.py      # One request/response interaction
    └── http/                # Request/response model
        ├── headers.py       # Case-insensitive multimap
        ├── request.py       # HttpRequest + head parser
        ├── response.py      # HttpResponse builder
        └── status_codes.py  # Reason phrases

=============================================================================
QUICK START
=============================================================================

    import httpx
    from embedhttp import EmbeddedHttpServer

    def hello(request, response):
        response.set_body("Hello, World!").add_header("Content-Type", "text/plain")

    with EmbeddedHttpServer() as server:
        server.add_handler("/hello", hello).start()
        assert httpx.get(server.url("/hello")).text == "Hello, World!"

=============================================================================
"""

__version__ = "1.0.0"

from .auth import Authenticator, Failure, Retry, Success
from .config import ServerConfig
from .errors import (
    BindError,
    DuplicateRouteError,
    EmbedHttpError,
    HandlerExecutionError,
    LifecycleStateError,
)
from .http import Headers, HttpRequest, HttpResponse, HTTPParseError
from .registry import HandlerEntry, RequestHandler
from .server import EmbeddedHttpServer, ServerState

__all__ = [
    "Authenticator",
    "BindError",
    "DuplicateRouteError",
    "EmbedHttpError",
    "EmbeddedHttpServer",
    "Failure",
    "HandlerEntry",
    "HandlerExecutionError",
    "Headers",
    "HttpRequest",
    "HttpResponse",
    "HTTPParseError",
    "LifecycleStateError",
    "RequestHandler",
    "Retry",
    "ServerConfig",
    "ServerState",
    "Success",
    "__version__",
]
