"""
=============================================================================
EMBEDDED HTTP SERVER
=============================================================================

The facade a test suite talks to. It collects handlers, binds a transport,
installs one route per handler and tears everything down again.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     EMBEDDED SERVER ARCHITECTURE                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                     ┌──────────────────────┐                         │
    │                     │  EmbeddedHttpServer  │                         │
    │                     │      (facade)        │                         │
    │                     └──────────┬───────────┘                         │
    │                                │                                     │
    │            ┌───────────────────┼───────────────────┐                 │
    │            │                   │                   │                 │
    │            ▼                   ▼                   ▼                 │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐          │
    │    │HandlerRegistry│   │ SocketServer │    │   Executor   │          │
    │    │ (path→handler)│   │ (transport)  │    │  (optional)  │          │
    │    └──────────────┘    └──────┬───────┘    └──────────────┘          │
    │                               │                                      │
    │                               ▼                                      │
    │                        ┌──────────────┐                              │
    │                        │   Exchange   │ ──► request adapter          │
    │                        └──────────────┘     HttpRequest/HttpResponse │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    UNSTARTED ──start()──► RUNNING ──stop()/close()──► STOPPED
        │                                                 │
        └── add_handler(), set_executor()                 └── terminal; port,
                                                              bind_host and
                                                              address still
                                                              report the last
                                                              bound address

    start() while RUNNING or STOPPED      → LifecycleStateError
    stop() while UNSTARTED or STOPPED     → no-op
    port/bind_host/address before start() → LifecycleStateError

=============================================================================
REQUEST ADAPTER
=============================================================================

Every route shares one adapter. For each exchange it:

    1. reads the whole request body (UTF-8, bad bytes → U+FFFD)
    2. builds an HttpRequest and a fresh HttpResponse
    3. calls the handler synchronously
    4. sends status, headers and body, or a bare 500 if the handler raised
    5. closes the exchange, whatever happened

=============================================================================
"""

import logging
import socket
import threading
from concurrent.futures import Executor
from enum import Enum
from functools import partial
from typing import Iterable, Optional, Tuple, Union

from .auth import AuthenticatorLike
from .config import ServerConfig, validate_port
from .core import Exchange, RequestTooLarge, SocketServer
from .errors import BindError, DuplicateRouteError, HandlerExecutionError, LifecycleStateError
from .http import HttpRequest, HttpResponse, HTTPStatus
from .registry import EntryLike, Handler, HandlerEntry, HandlerRegistry


logger = logging.getLogger(__name__)

StartTarget = Union[None, int, Tuple[str, int]]


class ServerState(Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    STOPPED = "stopped"


class EmbeddedHttpServer:
    """
    Minimal HTTP server for test suites.

    =========================================================================
    USAGE
    =========================================================================

        def hello(request, response):
            response.set_body("Hello, World!")

        server = EmbeddedHttpServer()
        server.add_handler("/hello", hello)
        server.start()                      # loopback, ephemeral port

        httpx.get(server.url("/hello"))     # 200 "Hello, World!"

        server.close()

    Or as a context manager (entering does not start the server):

        with EmbeddedHttpServer().add_handler("/hello", hello) as server:
            server.start(8080)
            ...

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Args:
            config: Server configuration. Defaults suit a test suite.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._registry = HandlerRegistry()
        self._executor: Optional[Executor] = None
        self._transport: Optional[SocketServer] = None
        self._address: Optional[Tuple[str, int]] = None
        self._state = ServerState.UNSTARTED

        # Serializes start()/stop() against each other.
        self._lock = threading.Lock()

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_handler(
        self,
        path: str,
        handler: Handler,
        authenticator: Optional[AuthenticatorLike] = None,
    ) -> "EmbeddedHttpServer":
        """
        Register ``handler`` for ``path`` and everything below it.

        Args:
            path: Route path, must start with "/".
            handler: ``handler(request, response)`` or a RequestHandler.
            authenticator: Optional gate run before the handler.

        Returns:
            Self for method chaining.

        Raises:
            ValueError: If path does not start with "/".
            LifecycleStateError: If the server has been started.
        """
        self._registry.add(path, handler, authenticator)
        return self

    def add_handlers(self, entries: Iterable[EntryLike]) -> "EmbeddedHttpServer":
        """
        Register several handlers in order.

        Accepts HandlerEntry objects and (path, handler[, authenticator])
        tuples.
        """
        self._registry.extend(entries)
        return self

    def set_executor(self, executor: Optional[Executor]) -> "EmbeddedHttpServer":
        """
        Run exchanges on ``executor`` instead of a thread per connection.

        The server never shuts the executor down; it belongs to the caller.
        """
        if self._state is not ServerState.UNSTARTED:
            raise LifecycleStateError("Executor cannot be changed after the server has started")
        self._executor = executor
        return self

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, target: StartTarget = None) -> "EmbeddedHttpServer":
        """
        Bind and start serving.

            start()                   → config.host, ephemeral port
            start(8080)               → config.host, port 8080
            start(("0.0.0.0", 0))     → that host, ephemeral port

        Raises:
            LifecycleStateError: If already running or stopped.
            DuplicateRouteError: If a path was registered twice.
            BindError: If the address cannot be bound.
        """
        with self._lock:
            if self._state is ServerState.RUNNING:
                raise LifecycleStateError("Server is already running")
            if self._state is ServerState.STOPPED:
                raise LifecycleStateError("A stopped server cannot be restarted")

            address = self._resolve_address(target)

            duplicates = self._registry.duplicate_paths()
            if duplicates:
                raise DuplicateRouteError(duplicates)

            self._apply_log_level()

            try:
                transport = SocketServer.bind(address, self.config.backlog, self.config)
            except OSError as e:
                raise BindError(address, e) from e

            self._registry.freeze()
            try:
                self._install_routes(transport)
                if self._executor is not None:
                    transport.set_executor(self._executor)
                transport.start()
            except BaseException:
                transport.stop()
                raise

            self._transport = transport
            self._address = transport.address
            self._state = ServerState.RUNNING

        logger.info(
            f"Embedded server started on {self._address[0]}:{self._address[1]} "
            f"with {len(self._registry)} handler(s)"
        )
        return self

    def _resolve_address(self, target: StartTarget) -> Tuple[str, int]:
        if target is None:
            return self.config.host, 0
        if isinstance(target, int) and not isinstance(target, bool):
            return self.config.host, validate_port(target)
        if isinstance(target, tuple) and len(target) == 2:
            host, port = target
            return str(host), validate_port(int(port))
        raise TypeError(f"start() expects None, a port or a (host, port) tuple, not {target!r}")

    def _install_routes(self, transport: SocketServer) -> None:
        for entry in self._registry:
            route = transport.create_route(entry.path, partial(self._handle_exchange, entry))
            route.authenticator = entry.authenticator
            logger.debug(f"Installed route {entry.path}")

    def _apply_log_level(self) -> None:
        if self.config.log_level:
            logging.getLogger("embedhttp").setLevel(self.config.log_level.upper())

    def stop(self, delay: float = 0) -> None:
        """
        Stop the server. Never raises.

        New connections are refused at once. In-flight exchanges get up to
        ``delay`` seconds to finish before they are cut off.
        """
        with self._lock:
            if self._state is not ServerState.RUNNING:
                return
            self._state = ServerState.STOPPED
            transport = self._transport

        try:
            transport.stop(delay)
        except Exception as e:
            logger.warning(f"Error while stopping transport: {e}")
        logger.info("Embedded server stopped")

    def close(self) -> None:
        """Same as stop()."""
        self.stop()

    def __enter__(self) -> "EmbeddedHttpServer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    @property
    def address(self) -> Tuple[str, int]:
        """
        Bound (host, port). Still answers after stop().

        Raises:
            LifecycleStateError: If the server was never started.
        """
        if self._address is None:
            raise LifecycleStateError("Server has not been started")
        return self._address

    @property
    def port(self) -> int:
        return self.address[1]

    @property
    def bind_host(self) -> str:
        return self.address[0]

    def url(self, path: str = "/") -> str:
        """
        Base URL for a client, e.g. ``http://127.0.0.1:54321/hello``.

        Wildcard binds are reported as loopback so the URL is connectable.
        """
        host = self.bind_host
        if host == "0.0.0.0":
            host = "127.0.0.1"
        elif host == "::":
            host = "::1"
        if ":" in host:
            host = f"[{host}]"
        if not path.startswith("/"):
            path = "/" + path
        return f"http://{host}:{self.port}{path}"

    # =========================================================================
    # REQUEST ADAPTER
    # =========================================================================

    def _handle_exchange(self, entry: HandlerEntry, exchange: Exchange) -> None:
        """Route callback shared by every handler (runs on a worker)."""
        try:
            try:
                body = exchange.request_body()
            except RequestTooLarge as e:
                logger.info(f"Rejecting {exchange.request_method} {exchange.request_path}: {e}")
                exchange.send_empty(HTTPStatus.PAYLOAD_TOO_LARGE)
                return
            except socket.timeout:
                logger.warning(f"Timed out reading body of {exchange.request_method} {exchange.request_path}")
                exchange.send_empty(HTTPStatus.REQUEST_TIMEOUT)
                return
            except OSError as e:
                logger.warning(f"Failed to read body of {exchange.request_method} {exchange.request_path}: {e}")
                return

            request = HttpRequest.from_raw(
                exchange.request_method,
                exchange.request_uri,
                exchange.request_protocol,
                exchange.request_headers,
                body,
                principal=exchange.principal,
            )
            response = HttpResponse()

            error = self._invoke_handler(entry, request, response)
            if error is not None:
                logger.error(str(error), exc_info=error.exc_info)
                if not exchange.response_started:
                    exchange.send_empty(HTTPStatus.INTERNAL_SERVER_ERROR)
                return

            self._send_response(exchange, response)
        except OSError as e:
            logger.warning(f"Client went away during {exchange.request_method} {exchange.request_path}: {e}")
        finally:
            exchange.close()

    @staticmethod
    def _invoke_handler(
        entry: HandlerEntry,
        request: HttpRequest,
        response: HttpResponse,
    ) -> Optional[HandlerExecutionError]:
        try:
            entry.invoke(request, response)
        except Exception as e:
            return HandlerExecutionError(request.path, request.method, e)
        return None

    @staticmethod
    def _send_response(exchange: Exchange, response: HttpResponse) -> None:
        for name, values in response.headers.items():
            for value in values:
                exchange.response_headers.add(name, value)

        body = response.body_bytes
        exchange.send_response_headers(response.status_code, len(body))
        exchange.write_body(body)

    def __repr__(self) -> str:
        where = f" {self._address[0]}:{self._address[1]}" if self._address else ""
        return f"<EmbeddedHttpServer {self._state.value}{where} handlers={len(self._registry)}>"
