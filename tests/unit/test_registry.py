"""
Unit tests for the handler registry.
"""

import pytest

from embedhttp.errors import LifecycleStateError
from embedhttp.http import HttpRequest, HttpResponse
from embedhttp.registry import HandlerEntry, HandlerRegistry, RequestHandler


def dummy_handler(request: HttpRequest, response: HttpResponse) -> None:
    """Dummy handler for testing."""
    response.set_body(request.path)


class Echo(RequestHandler):
    def handle(self, request, response):
        response.set_body(request.body)


class TestHandlerEntry:
    """Tests for HandlerEntry."""

    def test_path_must_start_with_slash(self):
        """Test relative paths are refused at registration."""
        with pytest.raises(ValueError):
            HandlerEntry("get", dummy_handler)

    def test_handler_must_be_callable(self):
        """Test non-callable handlers are refused."""
        with pytest.raises(TypeError):
            HandlerEntry("/get", "not a handler")

    def test_invoke_function(self):
        """Test plain function handlers are called."""
        response = HttpResponse()
        HandlerEntry("/get", dummy_handler).invoke(HttpRequest("GET", "/get/x"), response)

        assert response.body == "/get/x"

    def test_invoke_handler_object(self):
        """Test RequestHandler subclasses are called through handle()."""
        response = HttpResponse()
        HandlerEntry("/echo", Echo()).invoke(HttpRequest("POST", "/echo", body="hi"), response)

        assert response.body == "hi"

    def test_invoke_duck_typed_object(self):
        """Test any object with handle(request, response) is accepted."""
        class Duck:
            def handle(self, request, response):
                response.set_status_code(204)

        response = HttpResponse()
        HandlerEntry("/duck", Duck()).invoke(HttpRequest("GET", "/duck"), response)

        assert response.status_code == 204


class TestHandlerRegistry:
    """Tests for HandlerRegistry class."""

    def test_add_keeps_order(self):
        """Test entries are kept in registration order."""
        registry = HandlerRegistry()
        registry.add("/b", dummy_handler)
        registry.add("/a", dummy_handler)

        assert [e.path for e in registry] == ["/b", "/a"]
        assert len(registry) == 2

    def test_extend_accepts_entries_and_tuples(self):
        """Test bulk registration with mixed entry forms."""
        auth = lambda exchange: None  # noqa: E731
        registry = HandlerRegistry()
        registry.extend([
            HandlerEntry("/one", dummy_handler),
            ("/two", dummy_handler),
            ("/three", dummy_handler, auth),
        ])

        entries = list(registry)
        assert [e.path for e in entries] == ["/one", "/two", "/three"]
        assert entries[2].authenticator is auth

    def test_extend_is_all_or_nothing(self):
        """Test a bad entry leaves the registry unchanged."""
        registry = HandlerRegistry()

        with pytest.raises(ValueError):
            registry.extend([("/ok", dummy_handler), ("bad", dummy_handler)])

        assert len(registry) == 0

    def test_duplicates_are_reported(self):
        """Test duplicate paths are kept and reported once each."""
        registry = HandlerRegistry()
        registry.add("/a", dummy_handler)
        registry.add("/b", dummy_handler)
        registry.add("/a", dummy_handler)
        registry.add("/a", dummy_handler)

        assert len(registry) == 4
        assert registry.duplicate_paths() == ["/a"]

    def test_no_duplicates(self):
        """Test distinct paths report nothing."""
        registry = HandlerRegistry()
        registry.add("/a", dummy_handler)
        registry.add("/a/b", dummy_handler)

        assert registry.duplicate_paths() == []

    def test_frozen_registry_refuses_changes(self):
        """Test mutation after freeze() raises LifecycleStateError."""
        registry = HandlerRegistry()
        registry.add("/a", dummy_handler)
        registry.freeze()

        assert registry.frozen
        with pytest.raises(LifecycleStateError):
            registry.add("/b", dummy_handler)
        with pytest.raises(LifecycleStateError):
            registry.extend([("/c", dummy_handler)])
        assert len(registry) == 1
