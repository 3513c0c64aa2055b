"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

A handler receives a fresh HttpResponse and fills it in. Every setter
returns ``self`` so a handler can be a single expression:

    def hello(request, response):
        response.set_body("Hello, World!").add_header("content-type", "text/plain")

After the handler returns, the request adapter reads the response exactly
once and hands it to the transport:

        HttpResponse                 adapter                  Exchange
    ─────────────────────     ───────────────────     ──────────────────────
    status_code=200           copy headers       ──►  response_headers
    headers={content-type:    encode body UTF-8  ──►  send_response_headers(
      [text/plain]}                                      200, len(bytes))
    body="Hello, World!"                         ──►  write_body(bytes)

The builder knows nothing about sockets; Content-Length and the other
connection-level headers are the transport's business.

=============================================================================
"""

import re
from typing import Optional

from .headers import TOKEN_PATTERN, Headers


# Header values go out as ISO-8859-1 text; HTAB is the only control allowed.
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


class HttpResponse:
    """
    Mutable response builder handed to a handler.

    Defaults to status 200, no headers and an empty body.
    """

    def __init__(self):
        self._status_code = 200
        self._headers = Headers()
        self._body = ""

    # =========================================================================
    # FLUENT SETTERS
    # =========================================================================

    def set_status_code(self, status_code: int) -> "HttpResponse":
        """
        Set the status code.

        Raises:
            TypeError: If the code is not an int (HTTPStatus members are).
            ValueError: If the code is outside 200-599. Interim (1xx)
                        responses are the transport's business.
        """
        if isinstance(status_code, bool) or not isinstance(status_code, int):
            raise TypeError(f"Status code must be int, not {type(status_code).__name__}")
        if not 200 <= status_code <= 599:
            raise ValueError(f"Invalid status code: {status_code}")
        self._status_code = int(status_code)
        return self

    def add_header(self, name: str, value: str) -> "HttpResponse":
        """
        Append a header value. Repeated calls with the same name keep every
        value, in call order.

        Raises:
            ValueError: If name is not an RFC 7230 token, or value holds a
                        control character or anything outside ISO-8859-1.
        """
        if not isinstance(name, str) or not TOKEN_PATTERN.fullmatch(name):
            raise ValueError(f"Invalid header name: {name!r}")
        if not isinstance(value, str):
            raise TypeError(f"Header {name} value must be str, not {type(value).__name__}")
        if CONTROL_CHARS.search(value):
            raise ValueError(f"Header {name} value contains a control character: {value!r}")
        try:
            value.encode("iso-8859-1")
        except UnicodeEncodeError:
            raise ValueError(f"Header {name} value is not ISO-8859-1: {value!r}") from None
        self._headers.add(name, value)
        return self

    def set_body(self, body: str) -> "HttpResponse":
        """
        Replace the body text.

        Raises:
            TypeError: If body is not a str (encode nothing yourself, the
                       transport sends it as UTF-8).
        """
        if not isinstance(body, str):
            raise TypeError(f"Body must be str, not {type(body).__name__}")
        self._body = body
        return self

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def body(self) -> str:
        return self._body

    @property
    def body_bytes(self) -> bytes:
        """Body encoded as UTF-8, exactly what goes on the wire."""
        return self._body.encode("utf-8")

    def get_first_header(self, name: str) -> Optional[str]:
        """First value of a header, or None if the handler never set it."""
        return self._headers.get_first(name)

    def __repr__(self) -> str:
        return (
            f"HttpResponse(status_code={self._status_code}, "
            f"headers={self._headers.to_dict()!r}, body={self._body!r})"
        )
