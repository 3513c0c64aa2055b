"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket for exactly one exchange.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

    Client sends:                   Server might receive:
        "GET /get HTTP/1.1\r\n"         recv() → "GET /g"
        "Host: x\r\n\r\n"               recv() → "et HTTP/1.1\r\nHost: x\r\n\r\n"

So the head is buffered until the blank line (\r\n\r\n) shows up, and the
body is read separately once Content-Length is known. Anything that arrived
after the head while buffering is the start of the body and is kept:

    _buffer after read_head():
    ┌──────────────────────────────┬──────────────────┐
    │  head (returned, removed)    │  body prefix     │ ◄── read_body() starts here
    └──────────────────────────────┴──────────────────┘

Reading the head and reading the body are separate steps so that the route's
authenticator can run (and reject) before a possibly large body is pulled
off the wire, and so "Expect: 100-continue" can be answered in between.

=============================================================================
"""

import logging
import socket
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)

HEAD_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    """Connection lifecycle states, mostly for logging."""
    NEW = "new"                # Just accepted
    READING = "reading"        # Reading head or body
    PROCESSING = "processing"  # Handler is running
    WRITING = "writing"        # Sending response bytes
    CLOSED = "closed"          # Socket released


class RequestTooLarge(Exception):
    """Head or body exceeded the configured size limit."""


@dataclass
class Connection:
    """
    One accepted client connection.

    Attributes:
        socket: The client socket returned by accept().
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current ConnectionState.
        created_at: time.monotonic() when the connection was accepted.
    """

    socket: socket.socket
    address: tuple
    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    max_request_size: int = 10 * 1024 * 1024

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.monotonic)

    _buffer: bytes = field(default=b"", repr=False)
    _consumed: int = field(default=0, repr=False)
    _close_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_head(self) -> Optional[bytes]:
        """
        Read up to the blank line that ends the request head.

        Returns:
            Head bytes without the terminating CRLFCRLF, or None if the client
            closed the connection before sending a complete head.

        Raises:
            RequestTooLarge: If the head alone exceeds max_request_size.
            socket.timeout: If the client stalls.
        """
        self.state = ConnectionState.READING

        while HEAD_TERMINATOR not in self._buffer:
            if len(self._buffer) > self.max_request_size:
                raise RequestTooLarge(f"Request head too large: {len(self._buffer)} bytes")
            chunk = self._recv(self.buffer_size)
            if not chunk:
                return None
            self._buffer += chunk

        head_end = self._buffer.find(HEAD_TERMINATOR)
        head = self._buffer[:head_end]
        self._buffer = self._buffer[head_end + len(HEAD_TERMINATOR):]
        self._consumed = head_end + len(HEAD_TERMINATOR)
        return head

    def read_body(self, length: int) -> bytes:
        """
        Read exactly ``length`` body bytes.

        Raises:
            RequestTooLarge: If head + body would exceed max_request_size.
            ConnectionError: If the client closes before sending everything.
        """
        if self._consumed + length > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {self._consumed + length} bytes")

        self.state = ConnectionState.READING
        while len(self._buffer) < length:
            chunk = self._recv(min(self.buffer_size, length - len(self._buffer)))
            if not chunk:
                raise ConnectionError(
                    f"Client closed connection after {len(self._buffer)} of {length} body bytes"
                )
            self._buffer += chunk

        body = self._buffer[:length]
        self._buffer = self._buffer[length:]
        self._consumed += length
        return body

    def _recv(self, size: int) -> bytes:
        try:
            return self.socket.recv(size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> None:
        """
        Send all of ``data``.

        Raises:
            OSError: If the client went away.
        """
        self.state = ConnectionState.WRITING
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """
        Close after a completed exchange.

        shutdown(SHUT_WR) sends FIN so the client sees the end of the
        response; unread request bytes are then drained briefly so the kernel
        does not answer them with RST, which could discard the response
        before the client reads it.
        """
        with self._close_lock:
            if self.closed:
                return
            try:
                self.socket.shutdown(socket.SHUT_WR)
                self.socket.settimeout(0.2)
                while self.socket.recv(self.buffer_size):
                    pass
            except OSError:
                pass
            self._release()

    def abort(self) -> None:
        """Close immediately, dropping whatever is in flight."""
        if self.closed:
            return
        # Outside the lock: wakes a worker blocked in recv() or in close().
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        with self._close_lock:
            if not self.closed:
                self._release()

    def _release(self) -> None:
        try:
            self.socket.close()
        except OSError:
            pass
        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {time.monotonic() - self.created_at:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
