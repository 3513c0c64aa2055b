"""
Unit tests for HttpRequest and request head parsing.
"""

import pytest

from embedhttp.errors import EmbedHttpError
from embedhttp.http import Headers, HttpRequest, HTTPParseError, RequestParser


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        head = RequestParser().parse_head(sample_get_request)

        assert head.method == "GET"
        assert head.uri == "/api/users?page=1&limit=10"
        assert head.protocol == "HTTP/1.1"
        assert head.content_length == 0

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed correctly, repeats included."""
        head = RequestParser().parse_head(sample_get_request)

        assert head.headers.get_first("host") == "localhost:8080"
        assert head.headers.get_first("User-Agent") == "pytest"
        assert head.headers.get_all("X-Tag") == ["one", "two"]

    def test_parse_post_head(self, sample_post_request: bytes):
        """Test Content-Length is exposed as an int."""
        head = RequestParser().parse_head(sample_post_request)

        assert head.method == "POST"
        assert head.content_length == 45

    def test_any_token_method_accepted(self):
        """Test the parser does not restrict the method set."""
        head = RequestParser().parse_head(b"PURGE /cache HTTP/1.1\r\nHost: test")
        assert head.method == "PURGE"

    def test_http_10_accepted(self):
        """Test HTTP/1.0 requests are parsed."""
        head = RequestParser().parse_head(b"GET / HTTP/1.0")
        assert head.protocol == "HTTP/1.0"

    def test_parse_invalid_request_line(self):
        """Test handling of malformed request line."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(b"GET\r\nHost: test")

        assert exc_info.value.status_code == 400

    def test_parse_empty_head(self):
        """Test an empty head is rejected."""
        with pytest.raises(HTTPParseError):
            RequestParser().parse_head(b"")

    def test_unsupported_version(self):
        """Test that HTTP/2.0 in a request line gets 505."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(b"GET / HTTP/2.0\r\nHost: test")

        assert exc_info.value.status_code == 505

    def test_malformed_header(self):
        """Test header lines without a colon are rejected."""
        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(b"GET / HTTP/1.1\r\nNoColonHere")

        assert exc_info.value.status_code == 400

    def test_obsolete_line_folding(self):
        """Test folded header continuation lines are rejected."""
        with pytest.raises(HTTPParseError):
            RequestParser().parse_head(b"GET / HTTP/1.1\r\nX-A: one\r\n two")

    def test_chunked_body_not_implemented(self):
        """Test chunked request bodies get 501."""
        raw = b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked"

        with pytest.raises(HTTPParseError) as exc_info:
            RequestParser().parse_head(raw)

        assert exc_info.value.status_code == 501

    def test_invalid_content_length(self):
        """Test non-numeric and negative Content-Length values."""
        parser = RequestParser()

        with pytest.raises(HTTPParseError):
            parser.parse_head(b"POST / HTTP/1.1\r\nContent-Length: ten")
        with pytest.raises(HTTPParseError):
            parser.parse_head(b"POST / HTTP/1.1\r\nContent-Length: -1")

    def test_conflicting_content_length(self):
        """Test two different Content-Length values are rejected."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 5\r\nContent-Length: 6"

        with pytest.raises(HTTPParseError):
            RequestParser().parse_head(raw)

    def test_expects_continue(self):
        """Test Expect: 100-continue is only honored for HTTP/1.1."""
        parser = RequestParser()

        head = parser.parse_head(b"POST / HTTP/1.1\r\nExpect: 100-Continue\r\nContent-Length: 3")
        assert head.expects_continue is True

        head = parser.parse_head(b"POST / HTTP/1.0\r\nExpect: 100-continue\r\nContent-Length: 3")
        assert head.expects_continue is False

    def test_parse_error_is_embedhttp_error(self):
        """Test HTTPParseError belongs to the package error family."""
        assert issubclass(HTTPParseError, EmbedHttpError)


class TestHttpRequest:
    """Tests for HttpRequest class."""

    def test_from_raw_decodes_utf8(self):
        """Test body bytes are decoded as UTF-8."""
        request = HttpRequest.from_raw(
            "POST", "/post", "HTTP/1.1", Headers(), "héllo ✓".encode("utf-8")
        )
        assert request.body == "héllo ✓"

    def test_from_raw_replaces_invalid_utf8(self):
        """Test undecodable bytes become U+FFFD instead of failing."""
        request = HttpRequest.from_raw("POST", "/", "HTTP/1.1", Headers(), b"ok\xff\xfe")
        assert request.body == "ok\ufffd\ufffd"

    def test_get_first_header(self):
        """Test header lookup helper."""
        headers = Headers([("Accept", "text/html"), ("accept", "application/json")])
        request = HttpRequest("GET", "/", headers=headers)

        assert request.get_first_header("ACCEPT") == "text/html"
        assert request.get_first_header("X-Missing") is None

    def test_path_strips_query_and_decodes(self):
        """Test path is the percent-decoded URI path."""
        request = HttpRequest("GET", "/files/a%20b.txt?download=1")
        assert request.path == "/files/a b.txt"

    def test_query_params(self):
        """Test query parameter parsing."""
        request = HttpRequest("GET", "/search?q=hello%20world&tag=a&tag=b&empty=")

        assert request.query_params == {"q": ["hello world"], "tag": ["a", "b"], "empty": [""]}
        assert request.get_query("q") == "hello world"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_json_and_content_type(self):
        """Test JSON body parsing."""
        request = HttpRequest(
            "POST",
            "/api/users",
            headers=Headers([("Content-Type", "application/json; charset=utf-8")]),
            body='{"name": "John", "email": "john@example.com"}',
        )

        assert request.content_type == "application/json"
        assert request.json() == {"name": "John", "email": "john@example.com"}

    def test_invalid_json(self):
        """Test invalid JSON raises ValueError."""
        request = HttpRequest("POST", "/", body="not json")
        with pytest.raises(ValueError):
            request.json()

    def test_request_is_immutable(self):
        """Test handlers cannot rebind request fields."""
        request = HttpRequest("GET", "/")
        with pytest.raises(AttributeError):
            request.body = "changed"

    def test_headers_are_read_only(self):
        """Test handlers cannot add, set or remove request headers."""
        source = Headers([("Host", "test")])
        request = HttpRequest("GET", "/", headers=source)

        with pytest.raises(TypeError):
            request.headers.add("X-Injected", "yes")
        with pytest.raises(TypeError):
            request.headers.set("Host", "evil")
        with pytest.raises(TypeError):
            request.headers.remove("Host")

        assert request.get_first_header("X-Injected") is None
        assert request.get_first_header("Host") == "test"

    def test_headers_detached_from_source(self):
        """Test later changes to the source Headers do not leak in."""
        source = Headers([("Host", "test")])
        request = HttpRequest("GET", "/", headers=source)
        source.add("X-Late", "1")

        assert request.get_first_header("X-Late") is None
