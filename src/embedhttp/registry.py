"""
=============================================================================
HANDLER REGISTRY
=============================================================================

Ordered list of (path, handler, authenticator) entries collected before the
server starts:

    add_handler("/get", get)            ──►  [ HandlerEntry("/get", get) ,
    add_handler("/post", post, auth)    ──►    HandlerEntry("/post", post, auth) ]
                                                          │
    start() ── freeze() ──────────────────────────────────┘
                  │
                  └──► one transport route per entry

The registry never deduplicates. Two entries for the same path are kept
as-is and reported by duplicate_paths(); the server refuses to start with
them.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple, Union

from .auth import AuthenticatorLike
from .errors import LifecycleStateError
from .http.request import HttpRequest
from .http.response import HttpResponse


class RequestHandler(ABC):
    """
    Base class for object-style handlers.

    Example:
        class Echo(RequestHandler):
            def handle(self, request, response):
                response.set_body(request.body)
    """

    @abstractmethod
    def handle(self, request: HttpRequest, response: HttpResponse) -> None:
        """Inspect ``request`` and fill in ``response``."""

    def __call__(self, request: HttpRequest, response: HttpResponse) -> None:
        self.handle(request, response)


# Plain function or any object with handle(request, response).
Handler = Union[RequestHandler, Callable[[HttpRequest, HttpResponse], None]]


@dataclass(frozen=True)
class HandlerEntry:
    """One registered handler and its optional authenticator."""

    path: str
    handler: Handler
    authenticator: Optional[AuthenticatorLike] = None

    def __post_init__(self):
        if not isinstance(self.path, str) or not self.path.startswith("/"):
            raise ValueError(f"Handler path must start with '/': {self.path!r}")
        if not callable(self.handler) and not callable(getattr(self.handler, "handle", None)):
            raise TypeError(f"Handler for {self.path} is not callable")

    def invoke(self, request: HttpRequest, response: HttpResponse) -> None:
        """Run the handler synchronously."""
        handle = getattr(self.handler, "handle", None)
        if callable(handle):
            handle(request, response)
        else:
            self.handler(request, response)


EntryLike = Union[HandlerEntry, Tuple[str, Handler], Tuple[str, Handler, Optional[AuthenticatorLike]]]


class HandlerRegistry:
    """Ordered handler entries; mutable until frozen."""

    def __init__(self):
        self._entries: List[HandlerEntry] = []
        self._frozen = False

    def add(
        self,
        path: str,
        handler: Handler,
        authenticator: Optional[AuthenticatorLike] = None,
    ) -> HandlerEntry:
        """Append one entry and return it."""
        self._check_mutable()
        entry = HandlerEntry(path, handler, authenticator)
        self._entries.append(entry)
        return entry

    def extend(self, entries: Iterable[EntryLike]) -> None:
        """
        Append entries in input order.

        Entries are validated as a batch first, so a bad item leaves the
        registry unchanged.
        """
        self._check_mutable()
        batch = [e if isinstance(e, HandlerEntry) else HandlerEntry(*e) for e in entries]
        self._entries.extend(batch)

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def duplicate_paths(self) -> List[str]:
        """Paths registered more than once, in first-seen order."""
        seen = set()
        duplicates: List[str] = []
        for entry in self._entries:
            if entry.path in seen and entry.path not in duplicates:
                duplicates.append(entry.path)
            seen.add(entry.path)
        return duplicates

    def _check_mutable(self) -> None:
        if self._frozen:
            raise LifecycleStateError("Handlers cannot be added after the server has started")

    def __iter__(self) -> Iterator[HandlerEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
