"""
=============================================================================
HTTP REQUEST MODEL AND PARSER
=============================================================================

Two halves live here:

    Raw bytes from socket              What a handler sees
    ─────────────────────              ───────────────────

    b"POST /post?x=1 HTTP/1.1\r\n      HttpRequest(
      Content-Type: ...\r\n               method="POST",
      Content-Length: 25\r\n   ──►        uri="/post?x=1",
      \r\n                                protocol="HTTP/1.1",
      {...}"                              headers=Headers(...),
                                          body="{...}",
         RequestParser                 )
         (transport side)                 (handler side, read-only)

RequestParser only understands the request HEAD (request line + headers).
The body is read by the Connection using Content-Length and handed over as
raw bytes; HttpRequest.from_raw decodes it.

=============================================================================
BODY DECODING
=============================================================================

Bodies are decoded as UTF-8 with errors="replace". A client that sends
invalid UTF-8 still gets its request through to the handler; the bad bytes
show up as U+FFFD. Handlers that need exact bytes should not be using this
server.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit
import json
import re

from ..errors import EmbedHttpError
from .headers import TOKEN, Headers


class HTTPParseError(EmbedHttpError):
    """
    Raised when a request head cannot be parsed.

    Carries the status code the transport should answer with:

        400 Bad Request                 - Malformed request line or header
        413 Payload Too Large           - Over the configured size limit
        501 Not Implemented             - Chunked request body
        505 HTTP Version Not Supported  - Not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class HttpRequest:
    """
    Read-only view of one incoming request.

    Attributes:
        method:    Request method as sent ("GET", "POST", ...).
        uri:       Request target exactly as sent, query string included.
        protocol:  Protocol string from the request line ("HTTP/1.1").
        headers:   Every header value, grouped by case-insensitive name.
                   Always a read-only copy; add/set/remove raise TypeError.
        body:      Request body decoded as UTF-8 (with replacement).
        principal: Whatever the route's authenticator returned on success.
    """

    method: str
    uri: str
    protocol: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: str = ""
    principal: Optional[Any] = None

    def __post_init__(self):
        if not self.headers.read_only:
            object.__setattr__(self, "headers", self.headers.read_only_copy())

    @classmethod
    def from_raw(
        cls,
        method: str,
        uri: str,
        protocol: str,
        headers: Headers,
        body: bytes,
        principal: Optional[Any] = None,
    ) -> "HttpRequest":
        """Build a request from transport data, decoding the body bytes."""
        return cls(
            method=method,
            uri=uri,
            protocol=protocol,
            headers=headers,
            body=body.decode("utf-8", errors="replace"),
            principal=principal,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def path(self) -> str:
        """URI path without the query string, percent-decoded."""
        return unquote(urlsplit(self.uri).path) or "/"

    @property
    def query_params(self) -> Dict[str, List[str]]:
        """
        Parsed query string as dict of lists.

            "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}
        """
        return parse_qs(urlsplit(self.uri).query, keep_blank_values=True)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters, lowercased, or None."""
        value = self.headers.get_first("content-type")
        if not value:
            return None
        return value.split(";")[0].strip().lower()

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_first_header(self, name: str) -> Optional[str]:
        """
        First value of a header (case-insensitive), or None if absent.

        Example:
            request.get_first_header("Content-Type")  # "application/json"
            request.get_first_header("X-Missing")     # None
        """
        return self.headers.get_first(name)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body)


@dataclass(frozen=True)
class RequestHead:
    """Request line and headers, before the body has been read."""

    method: str
    uri: str
    protocol: str
    headers: Headers

    @property
    def content_length(self) -> int:
        return _content_length(self.headers)

    @property
    def expects_continue(self) -> bool:
        expect = self.headers.get_first("expect") or ""
        return expect.lower() == "100-continue" and self.protocol == "HTTP/1.1"


class RequestParser:
    """
    Parses a raw request head into a RequestHead.

    ==========================================================================
    REGEX PATTERNS
    ==========================================================================

    REQUEST_LINE_PATTERN: ^([!#$%&'*+.^_`|~0-9A-Za-z-]+) ([^ ]+) (HTTP/\\d\\.\\d)$

        Method is any RFC 7230 token; the transport does not restrict the
        method set, handlers decide what they accept.

    HEADER_PATTERN: ^([^:\\s]+):\\s*(.*?)\\s*$

        Name must not contain whitespace (RFC 7230 §3.2.4 forbids space
        before the colon). Value has optional whitespace trimmed.

    ==========================================================================
    """

    REQUEST_LINE_PATTERN = re.compile(rf"^({TOKEN}) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*?)\s*$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def parse_head(self, data: bytes) -> RequestHead:
        """
        Parse request line and headers.

        Args:
            data: Bytes up to (not including) the blank line that ends the
                  header section.

        Returns:
            Parsed RequestHead.

        Raises:
            HTTPParseError: If the head is malformed.
        """
        # Header section is ISO-8859-1 per RFC 7230; it round-trips any byte.
        text = data.decode("iso-8859-1")
        lines = text.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request line")

        method, uri, protocol = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        transfer_encoding = headers.get_first("transfer-encoding")
        if transfer_encoding and transfer_encoding.lower() != "identity":
            raise HTTPParseError(
                f"Unsupported Transfer-Encoding: {transfer_encoding}",
                status_code=501,
            )

        _content_length(headers)
        return RequestHead(method=method, uri=uri, protocol=protocol, headers=headers)

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, protocol = match.groups()
        if protocol not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {protocol}",
                status_code=505,
            )
        return method, uri, protocol

    def _parse_headers(self, lines: List[str]) -> Headers:
        headers = Headers()
        for line in lines:
            if not line:
                continue
            # Obsolete line folding (RFC 7230 §3.2.4) is rejected outright.
            if line[0] in (" ", "\t"):
                raise HTTPParseError("Obsolete header line folding")
            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line!r}")
            name, value = match.groups()
            headers.add(name, value)
        return headers


def _content_length(headers: Headers) -> int:
    """Content-Length as int, 0 when absent. Conflicting values are rejected."""
    values = headers.get_all("content-length")
    if not values:
        return 0
    if len(set(values)) > 1:
        # Conflicting lengths are a request smuggling vector.
        raise HTTPParseError(f"Conflicting Content-Length values: {values}")
    try:
        length = int(values[0])
    except ValueError:
        raise HTTPParseError(f"Invalid Content-Length: {values[0]!r}")
    if length < 0:
        raise HTTPParseError(f"Invalid Content-Length: {values[0]!r}")
    return length
