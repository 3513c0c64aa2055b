"""
=============================================================================
EXCHANGE
=============================================================================

The transport-level view of one request/response interaction. Route
callbacks and authenticators receive an Exchange; handlers never do, they
only see the HttpRequest/HttpResponse the facade builds from it.

    ┌──────────────────────────────────────────────────────────────────┐
    │                          Exchange                                │
    ├──────────────────────────────────────────────────────────────────┤
    │  request side                    response side                   │
    │  ────────────                    ─────────────                   │
    │  request_method                  response_headers (Headers)      │
    │  request_uri                     send_response_headers(code, n)  │
    │  request_protocol                write_body(bytes)               │
    │  request_headers                 close()                         │
    │  request_body()  ◄── read on first call, cached                  │
    │  principal       ◄── set from the authenticator's Success        │
    └──────────────────────────────────────────────────────────────────┘

Ordering rules:

    1. response headers are sent at most once
    2. body bytes may only follow the headers
    3. close() always ends the exchange, sent or not

=============================================================================
"""

import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Optional
from urllib.parse import unquote, urlsplit

from ..http.headers import Headers
from ..http.request import RequestHead
from ..http.status_codes import HTTPStatus, reason_phrase
from .connection import Connection


logger = logging.getLogger(__name__)

# Headers the transport owns; handler-supplied values are dropped.
COMPUTED_HEADERS = ("content-length", "transfer-encoding", "connection")


class Exchange:
    """One request/response interaction over a single connection."""

    def __init__(
        self,
        connection: Connection,
        head: RequestHead,
        server_name: str = "embedhttp/1.0",
    ):
        self.connection = connection
        self.server_name = server_name
        self.request_method = head.method
        self.request_uri = head.uri
        self.request_protocol = head.protocol
        self.request_headers = head.headers
        self.response_headers = Headers()
        self.principal: Optional[Any] = None

        self._content_length = head.content_length
        self._expects_continue = head.expects_continue
        self._body: Optional[bytes] = None
        self._headers_sent = False
        self._suppress_body = False
        self.status_code: Optional[int] = None
        self.bytes_written = 0

    # =========================================================================
    # REQUEST SIDE
    # =========================================================================

    @property
    def request_path(self) -> str:
        """Path part of the request URI, percent-decoded."""
        return unquote(urlsplit(self.request_uri).path) or "/"

    @property
    def content_length(self) -> int:
        """Declared request body length (0 when absent)."""
        return self._content_length

    @property
    def remote_address(self) -> tuple:
        return self.connection.address

    def request_body(self) -> bytes:
        """
        Read the whole request body (once) and return it.

        Answers "Expect: 100-continue" with an interim 100 response before
        reading, since the client is waiting for it.
        """
        if self._body is None:
            if self._expects_continue and self._content_length > 0 and not self._headers_sent:
                self.connection.send(b"HTTP/1.1 100 Continue\r\n\r\n")
            self._body = self.connection.read_body(self._content_length)
        return self._body

    # =========================================================================
    # RESPONSE SIDE
    # =========================================================================

    @property
    def response_started(self) -> bool:
        return self._headers_sent

    def send_response_headers(self, status_code: int, content_length: int) -> None:
        """
        Send the status line and headers.

        Args:
            status_code: Final status code (200-599 normally).
            content_length: Exact number of body bytes that will follow.

        Raises:
            RuntimeError: If headers were already sent.
        """
        if self._headers_sent:
            raise RuntimeError("Response headers already sent")

        no_body = 100 <= status_code < 200 or status_code in (
            HTTPStatus.NO_CONTENT,
            HTTPStatus.NOT_MODIFIED,
        )
        self._suppress_body = no_body or self.request_method == "HEAD"

        lines = [f"HTTP/1.1 {status_code} {reason_phrase(status_code)}".rstrip()]
        for name, values in self.response_headers.items():
            if name.lower() in COMPUTED_HEADERS:
                logger.warning(f"Ignoring handler-supplied {name} header")
                continue
            for value in values:
                lines.append(f"{name}: {value}")

        if "Date" not in self.response_headers:
            lines.append(f"Date: {format_http_date(datetime.now(timezone.utc))}")
        if "Server" not in self.response_headers:
            lines.append(f"Server: {self.server_name}")
        lines.append("Connection: close")
        if not no_body:
            lines.append(f"Content-Length: {content_length}")
        lines.append("")

        data = "\r\n".join(lines).encode("iso-8859-1") + b"\r\n"
        self._headers_sent = True
        self.status_code = status_code
        self.connection.send(data)

    def write_body(self, data: bytes) -> None:
        """Send body bytes after the headers (skipped for HEAD/204/304)."""
        if not self._headers_sent:
            raise RuntimeError("Response headers must be sent before the body")
        if self._suppress_body or not data:
            return
        self.connection.send(data)
        self.bytes_written += len(data)

    def send_empty(self, status_code: int) -> None:
        """Send a bodyless response, e.g. 404 or an auth rejection."""
        self.send_response_headers(status_code, 0)

    def close(self) -> None:
        self.connection.close()


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an IMF-fixdate (RFC 7231 §7.1.1.1).

        Sun, 06 Nov 1994 08:49:37 GMT
    """
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)
