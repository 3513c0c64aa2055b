"""
Wire-level tests with hand-written requests.
"""

from embedhttp import EmbeddedHttpServer, ServerConfig


def echo(request, response):
    response.set_body(request.body)


class TestProtocol:
    """Requests an ordinary client would not send."""

    def test_http_10_request(self, server, raw_http):
        """Test HTTP/1.0 clients are served and the connection closes."""
        server.add_handler("/echo", echo).start()

        status, headers, body = raw_http(
            server.address,
            b"POST /echo HTTP/1.0\r\nContent-Length: 5\r\n\r\nhello",
        )

        assert status == 200
        assert headers.get_first("connection") == "close"
        assert body == b"hello"

    def test_malformed_request_line(self, server, raw_http):
        """Test garbage gets 400."""
        server.start()

        status, headers, body = raw_http(server.address, b"NOT A REQUEST\r\n\r\n")

        assert status == 400
        assert body == b""

    def test_unsupported_version(self, server, raw_http):
        """Test HTTP/3.0 gets 505."""
        server.start()

        status, _, _ = raw_http(server.address, b"GET / HTTP/3.0\r\n\r\n")

        assert status == 505

    def test_chunked_request_not_implemented(self, server, raw_http):
        """Test chunked request bodies get 501 without reaching the handler."""
        calls = []
        server.add_handler("/echo", lambda req, resp: calls.append(req)).start()

        status, _, _ = raw_http(
            server.address,
            b"POST /echo HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n5\r\nhello\r\n0\r\n\r\n",
        )

        assert status == 501
        assert calls == []

    def test_expect_continue(self, server, raw_http):
        """Test an interim 100 precedes the final response."""
        server.add_handler("/echo", echo).start()

        raw = raw_http(
            server.address,
            b"POST /echo HTTP/1.1\r\nExpect: 100-continue\r\nContent-Length: 2\r\n\r\nhi",
            raw=True,
        )

        assert raw.startswith(b"HTTP/1.1 100 Continue\r\n\r\nHTTP/1.1 200 OK\r\n")
        assert raw.endswith(b"\r\n\r\nhi")

    def test_request_too_large(self, raw_http):
        """Test a body over max_request_size gets 413 before the handler."""
        calls = []
        config = ServerConfig(timeout=5.0, max_request_size=2048)
        with EmbeddedHttpServer(config) as server:
            server.add_handler("/echo", lambda req, resp: calls.append(req)).start()

            status, _, _ = raw_http(
                server.address,
                b"POST /echo HTTP/1.1\r\nContent-Length: 4096\r\n\r\n" + b"x" * 4096,
            )

        assert status == 413
        assert calls == []

    def test_percent_encoded_path_routes(self, server, raw_http):
        """Test routing uses the decoded path."""
        server.add_handler("/a b", lambda req, resp: resp.set_body(req.path)).start()

        status, _, body = raw_http(server.address, b"GET /a%20b/c HTTP/1.1\r\nHost: x\r\n\r\n")

        assert status == 200
        assert body == b"/a b/c"

    def test_client_disconnect_without_request(self, server, client):
        """Test an idle connection that closes does not disturb the server."""
        import socket

        server.add_handler("/get", lambda req, resp: resp.set_body("ok")).start()

        socket.create_connection(server.address, timeout=2.0).close()

        assert client.get(server.url("/get")).text == "ok"
