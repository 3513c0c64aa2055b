"""
=============================================================================
AUTHENTICATORS
=============================================================================

An authenticator gates one route. The transport calls it with the Exchange
BEFORE the request body is read and before the handler runs:

    request head parsed
          │
          ▼
    route.authenticator.authenticate(exchange)
          │
          ├── Success(principal)  → handler runs, request.principal set
          ├── Failure(403)        → 403 sent, handler never runs
          └── Retry(401)          → 401 sent with any challenge headers
                                    the authenticator put on
                                    exchange.response_headers

No authentication scheme is implemented here; subclass Authenticator:

    class TokenAuthenticator(Authenticator):
        def authenticate(self, exchange):
            if exchange.request_headers.get_first("X-Token") == "secret":
                return Success("tester")
            exchange.response_headers.add("WWW-Authenticate", 'Token realm="test"')
            return Retry(401)

A plain callable ``(exchange) -> AuthResult`` is accepted as well.

=============================================================================
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

if TYPE_CHECKING:
    from .core.exchange import Exchange


@dataclass(frozen=True)
class Success:
    """Request is allowed; ``principal`` is passed on to the handler."""

    principal: Optional[Any] = None


@dataclass(frozen=True)
class Failure:
    """Request is denied for good."""

    status_code: int = 403


@dataclass(frozen=True)
class Retry:
    """Request is denied but the client may retry with credentials."""

    status_code: int = 401


AuthResult = Union[Success, Failure, Retry]


class Authenticator(ABC):
    """Base class for per-route authenticators."""

    @abstractmethod
    def authenticate(self, exchange: "Exchange") -> AuthResult:
        """
        Decide whether the exchange may reach the handler.

        Args:
            exchange: Transport-level exchange. Request line and headers are
                      available; the body has not been read yet.

        Returns:
            Success, Failure or Retry.
        """

    def __call__(self, exchange: "Exchange") -> AuthResult:
        return self.authenticate(exchange)


AuthenticatorLike = Union[Authenticator, Callable[["Exchange"], AuthResult]]
