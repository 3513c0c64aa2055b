"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes and reason phrases used when writing the status line.

Handlers set a plain ``int`` on the response, so the serializer cannot rely
on every code being a member of the enum. ``reason_phrase()`` resolves known
codes to their RFC 7231 phrase and falls back to a class-level phrase for
anything else:

    HTTP/1.1 200 OK
             ─── ──
              │   │
              │   └── Reason phrase (purely informational, RFC 7230 §3.1.2)
              └────── Status code

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    Status codes the transport and facade produce themselves.

    Codes a handler picks that are not listed here go out unchanged;
    reason_phrase() gives them a class-level phrase.
    """

    # 1xx Informational
    CONTINUE = 100               # Interim answer to "Expect: 100-continue"

    # 2xx Success
    OK = 200
    NO_CONTENT = 204             # No body may follow

    # 3xx Redirection
    NOT_MODIFIED = 304           # No body may follow

    # 4xx Client Errors
    BAD_REQUEST = 400            # Malformed request line or headers
    UNAUTHORIZED = 401           # Authenticator asked for credentials
    FORBIDDEN = 403              # Authenticator rejected credentials
    NOT_FOUND = 404              # No route for the path
    REQUEST_TIMEOUT = 408        # Client never finished sending
    PAYLOAD_TOO_LARGE = 413      # Over ServerConfig.max_request_size

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500  # Handler raised
    NOT_IMPLEMENTED = 501        # Chunked request bodies
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase for this status code."""
        return _STATUS_PHRASES[self]


_STATUS_PHRASES = {
    HTTPStatus.CONTINUE: "Continue",
    HTTPStatus.OK: "OK",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.UNAUTHORIZED: "Unauthorized",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}

# Used when a handler picks a code we have no phrase for.
_CLASS_PHRASES = {
    1: "Informational",
    2: "Success",
    3: "Redirection",
    4: "Client Error",
    5: "Server Error",
}


def reason_phrase(status_code: int) -> str:
    """
    Get the reason phrase for any integer status code.

    Args:
        status_code: Three-digit HTTP status code.

    Returns:
        The RFC phrase for known codes, a generic class phrase for other
        codes in 100-599, or an empty string.
    """
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return _CLASS_PHRASES.get(status_code // 100, "")
