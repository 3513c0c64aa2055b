"""
=============================================================================
ERRORS
=============================================================================

Everything the facade raises to its caller derives from EmbedHttpError, so
a test harness can catch the whole family in one clause:

    EmbedHttpError
    ├── BindError              - Address/port could not be bound
    ├── DuplicateRouteError    - Two handlers registered for one path
    ├── LifecycleStateError    - API called in the wrong server state
    └── HandlerExecutionError  - A handler raised (logged, never re-raised)

All of them surface synchronously from the call that caused them, except
HandlerExecutionError, which exists so the request adapter can carry a
handler failure as a value and report it through logging.

=============================================================================
"""

from typing import List, Optional, Tuple


class EmbedHttpError(Exception):
    """Base class for all embedhttp errors."""


class BindError(EmbedHttpError):
    """
    The listening socket could not be bound (address in use, permission
    denied, unknown host). The server stays unstarted.
    """

    def __init__(self, address: Tuple[str, int], cause: OSError):
        host, port = address
        super().__init__(f"Failed to bind {host}:{port}: {cause}")
        self.address = address
        self.cause = cause


class DuplicateRouteError(EmbedHttpError):
    """More than one handler was registered for the same path."""

    def __init__(self, paths: List[str]):
        super().__init__(
            "Duplicate handler paths registered: " + ", ".join(sorted(paths))
        )
        self.paths = paths


class LifecycleStateError(EmbedHttpError):
    """An operation was attempted in a server state that does not allow it."""


class HandlerExecutionError(EmbedHttpError):
    """A handler raised while processing a request."""

    def __init__(self, path: str, method: str, cause: BaseException):
        super().__init__(f"Handler for {method} {path} failed: {cause!r}")
        self.path = path
        self.method = method
        self.cause = cause

    @property
    def exc_info(self) -> Tuple[type, BaseException, Optional[object]]:
        """Triple suitable for ``logger.error(..., exc_info=...)``."""
        return type(self.cause), self.cause, self.cause.__traceback__
