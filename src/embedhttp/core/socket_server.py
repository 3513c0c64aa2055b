"""
=============================================================================
SOCKET TRANSPORT
=============================================================================

The listener underneath EmbeddedHttpServer. It owns the listening socket,
the route table, the accept thread and the set of open connections; it
knows nothing about HttpRequest/HttpResponse. Routes hand their callback an
Exchange and the callback does the rest.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      SocketServer Internals                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    bind(address, backlog)   socket() → bind() → listen()             │
    │        │                                                             │
    │    create_route(path, cb)   one Route per path (duplicates refused)  │
    │    set_executor(executor)   optional, before start()                 │
    │        │                                                             │
    │    start()                  spawn accept thread                      │
    │        │                                                             │
    │        └──► _accept_loop()                                           │
    │                 while running:                                       │
    │                     accept()             (polls every 0.5s)          │
    │                     Connection(...)      wrap client socket          │
    │                     _dispatch(conn)      executor or new thread      │
    │                          │                                           │
    │                          └──► _serve(conn)                           │
    │                                  read head → parse                   │
    │                                  find route        (404 if none)     │
    │                                  authenticator     (401/403/...)     │
    │                                  route.callback(exchange)            │
    │                                  close connection                    │
    │                                                                      │
    │    stop(delay)              close listener, join accept thread,      │
    │                             wait up to delay, abort the rest         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ROUTE MATCHING
=============================================================================

A route matches its own path and anything below it on a "/" boundary.
The longest matching route wins:

    routes: "/", "/api", "/api/users"

    /                → "/"
    /api             → "/api"
    /api/users/42    → "/api/users"
    /apix            → "/"          ("/api" does not match "/apix")

=============================================================================
"""

import logging
import os
import socket
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..auth import AuthenticatorLike, Failure, Retry, Success
from ..config import ServerConfig
from ..errors import DuplicateRouteError
from ..http.request import HTTPParseError, RequestParser
from ..http.status_codes import HTTPStatus, reason_phrase
from .connection import Connection, ConnectionState, RequestTooLarge
from .exchange import Exchange


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("embedhttp.access")

RouteCallback = Callable[[Exchange], None]


@dataclass
class Route:
    """A path bound to a callback, optionally gated by an authenticator."""

    path: str
    callback: RouteCallback
    authenticator: Optional[AuthenticatorLike] = None

    def matches(self, path: str) -> bool:
        prefix = self.path.rstrip("/")
        return path == self.path or path == prefix or path.startswith(prefix + "/")


class SocketServer:
    """
    Threaded HTTP/1.x listener with a path-keyed route table.

    Usage:
        transport = SocketServer.bind(("127.0.0.1", 0), backlog=50)
        transport.create_route("/hello", callback)
        transport.start()
        ...
        transport.stop(0)
    """

    # accept() timeout; bounds how long the accept thread takes to notice stop().
    ACCEPT_POLL_INTERVAL = 0.5

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None
        self._routes: Dict[str, Route] = {}
        self._executor: Optional[Executor] = None
        self._parser = RequestParser()

        self._running = False
        self._accept_thread: Optional[threading.Thread] = None

        # Open connections, so stop() can abort them.
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)

    # =========================================================================
    # BINDING
    # =========================================================================

    @classmethod
    def bind(
        cls,
        address: Tuple[str, int],
        backlog: int,
        config: Optional[ServerConfig] = None,
    ) -> "SocketServer":
        """
        Create a transport listening on ``address``.

        Raises:
            OSError: If the socket cannot be bound or put into listen mode.
        """
        server = cls(config)
        server._bind(address, backlog)
        return server

    def _create_socket(self, host: str) -> socket.socket:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)

        # SO_REUSEADDR: rebind while old connections sit in TIME_WAIT.
        # On Windows it would let two servers share a port, so skip it there.
        if os.name != "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(self.ACCEPT_POLL_INTERVAL)
        return sock

    def _bind(self, address: Tuple[str, int], backlog: int) -> None:
        host, port = address
        sock = self._create_socket(host)
        try:
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError as e:
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            sock.close()
            raise

        self._socket = sock
        self._address = sock.getsockname()[:2]
        logger.debug(f"Bound to {self._address[0]}:{self._address[1]} (backlog={backlog})")

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); still available after stop()."""
        if self._address is None:
            raise RuntimeError("Transport is not bound")
        return self._address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def create_route(self, path: str, callback: RouteCallback) -> Route:
        """
        Bind ``callback`` to ``path``.

        Raises:
            DuplicateRouteError: If a route already exists for ``path``.
        """
        if path in self._routes:
            raise DuplicateRouteError([path])
        route = Route(path=path, callback=callback)
        self._routes[path] = route
        return route

    @property
    def routes(self) -> List[Route]:
        return list(self._routes.values())

    def set_executor(self, executor: Optional[Executor]) -> None:
        """
        Run exchanges on ``executor`` (anything with ``submit(fn, *args)``)
        instead of one new thread per connection.
        """
        if self._running:
            raise RuntimeError("Executor cannot be changed while running")
        self._executor = executor

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start accepting connections on a background thread."""
        if self._socket is None:
            raise RuntimeError("Transport is not bound")
        if self._running:
            raise RuntimeError("Transport already started")

        self._running = True
        host, port = self.address
        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            name=f"embedhttp-accept-{port}",
            daemon=True,
        )
        self._accept_thread.start()
        logger.info(f"Listening on {host}:{port}")

    def stop(self, delay: float = 0) -> None:
        """
        Stop the transport.

        The listener is closed first, so new connections are refused
        immediately. Exchanges still running get up to ``delay`` seconds to
        finish; whatever is left is aborted.
        """
        sock = self._socket
        if sock is None:
            return
        self._running = False

        # Wakes a blocked accept() on Linux; elsewhere the poll timeout does.
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

        thread = self._accept_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.ACCEPT_POLL_INTERVAL * 4)

        sock.close()
        self._socket = None

        with self._idle:
            if delay > 0:
                deadline = time.monotonic() + delay
                while self._connections:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._idle.wait(remaining)
            leftovers = list(self._connections.values())

        for conn in leftovers:
            conn.abort()

        if leftovers:
            logger.info(f"Aborted {len(leftovers)} in-flight connection(s)")
        logger.info("Socket server stopped")

    # =========================================================================
    # ACCEPTING
    # =========================================================================

    def _accept_loop(self) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                # Normal: lets us re-check self._running.
                continue
            except (OSError, AttributeError) as e:
                # AttributeError: stop() already dropped the socket.
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )
            logger.debug(f"[{conn.id}] Accepted connection from {client_address[0]}:{client_address[1]}")

            with self._lock:
                self._connections[conn.id] = conn
            self._dispatch(conn)

    def _dispatch(self, conn: Connection) -> None:
        try:
            if self._executor is not None:
                self._executor.submit(self._serve, conn)
            else:
                threading.Thread(
                    target=self._serve,
                    args=(conn,),
                    name=f"embedhttp-{conn.id}",
                    daemon=True,
                ).start()
        except RuntimeError as e:
            # Executor shut down, or the interpreter cannot start threads.
            logger.error(f"[{conn.id}] Could not dispatch connection: {e}")
            self._forget(conn)
            conn.abort()

    def _forget(self, conn: Connection) -> None:
        with self._idle:
            self._connections.pop(conn.id, None)
            if not self._connections:
                self._idle.notify_all()

    # =========================================================================
    # SERVING ONE EXCHANGE
    # =========================================================================

    def _serve(self, conn: Connection) -> None:
        """Handle exactly one exchange on ``conn`` (runs on a worker)."""
        started = time.monotonic()
        exchange: Optional[Exchange] = None
        try:
            exchange = self._read_exchange(conn)
            if exchange is None:
                return

            if exchange.content_length > self.config.max_request_size:
                exchange.send_empty(HTTPStatus.PAYLOAD_TOO_LARGE)
                return

            route = self._find_route(exchange.request_path)
            if route is None:
                exchange.send_empty(HTTPStatus.NOT_FOUND)
                return

            if route.authenticator is not None and not self._authenticate(route, exchange):
                return

            conn.state = ConnectionState.PROCESSING
            route.callback(exchange)

        except Exception as e:
            if self._running:
                logger.exception(f"[{conn.id}] Error serving connection: {e}")
            else:
                logger.debug(f"[{conn.id}] Connection dropped during shutdown: {e}")
        finally:
            if exchange is not None:
                self._log_access(conn, exchange, started)
            conn.close()
            self._forget(conn)

    def _read_exchange(self, conn: Connection) -> Optional[Exchange]:
        try:
            head_bytes = conn.read_head()
        except RequestTooLarge as e:
            self._reject(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
            return None
        except socket.timeout:
            self._reject(conn, HTTPStatus.REQUEST_TIMEOUT, "Request read timeout")
            return None

        if head_bytes is None:
            # Client connected and left without sending a request.
            return None

        try:
            head = self._parser.parse_head(head_bytes)
        except HTTPParseError as e:
            self._reject(conn, e.status_code, str(e))
            return None

        return Exchange(conn, head, server_name=self.config.server_name)

    def _find_route(self, path: str) -> Optional[Route]:
        best: Optional[Route] = None
        for route in self._routes.values():
            if route.matches(path) and (best is None or len(route.path) > len(best.path)):
                best = route
        return best

    def _authenticate(self, route: Route, exchange: Exchange) -> bool:
        """Run the route's authenticator; False means a response was sent."""
        authenticate = getattr(route.authenticator, "authenticate", route.authenticator)
        try:
            result = authenticate(exchange)
        except Exception as e:
            logger.exception(f"Authenticator for {route.path} raised: {e}")
            exchange.send_empty(HTTPStatus.INTERNAL_SERVER_ERROR)
            return False

        if isinstance(result, Success):
            exchange.principal = result.principal
            return True
        if isinstance(result, (Failure, Retry)):
            exchange.send_empty(result.status_code)
            return False

        logger.error(f"Authenticator for {route.path} returned {result!r}")
        exchange.send_empty(HTTPStatus.INTERNAL_SERVER_ERROR)
        return False

    def _reject(self, conn: Connection, status_code: int, reason: str) -> None:
        """Answer a request that never made it to a route."""
        logger.info(f"[{conn.id}] Rejecting request with {status_code}: {reason}")
        data = (
            f"HTTP/1.1 {status_code} {reason_phrase(status_code)}\r\n"
            f"Server: {self.config.server_name}\r\n"
            "Content-Length: 0\r\n"
            "Connection: close\r\n"
            "\r\n"
        ).encode("iso-8859-1")
        try:
            conn.send(data)
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send {status_code}: {e}")

    def _log_access(self, conn: Connection, exchange: Exchange, started: float) -> None:
        duration_ms = (time.monotonic() - started) * 1000
        access_logger.info(
            f'{conn.client_ip} "{exchange.request_method} {exchange.request_uri} '
            f'{exchange.request_protocol}" {exchange.status_code or "-"} '
            f"{exchange.bytes_written} {duration_ms:.2f}ms"
        )
