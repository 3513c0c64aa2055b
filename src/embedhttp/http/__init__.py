"""
=============================================================================
HTTP MODEL
=============================================================================

The request/response model handlers work with, plus the request-head
parser the transport uses.

    HttpRequest     - Read-only view of one request (body decoded as UTF-8)
    HttpResponse    - Fluent builder a handler fills in
    Headers         - Case-insensitive, ordered header multimap
    RequestParser   - Request line + header parsing (transport side)
    HTTPStatus      - Status codes with reason phrases

=============================================================================
"""

from .headers import Headers
from .request import HttpRequest, HTTPParseError, RequestHead, RequestParser
from .response import HttpResponse
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    "Headers",
    "HttpRequest",
    "HttpResponse",
    "HTTPParseError",
    "HTTPStatus",
    "RequestHead",
    "RequestParser",
    "reason_phrase",
]
