"""Strategy protocol and capability descriptor for pluggable authentication."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from authdispatch.session import Session


@runtime_checkable
class Strategy(Protocol):
    """Protocol for authentication strategies.

    Only ``authenticate`` is required. Strategies may additionally implement
    ``authenticate_payload``, ``sign_response`` and ``extend_request``; which of
    them are available is recorded once at registration as ``Capabilities``.
    """

    def authenticate(self, request: Request) -> Any:
        """Authenticate a request.

        Args:
            request: The inbound Starlette request.

        Returns:
            A ``Session`` (or an awaitable resolving to one). Failures are
            reported by raising ``AuthChallenge`` when no credentials were
            found, or ``AuthFailure`` when they were rejected.
        """
        ...


@dataclass(frozen=True)
class OutgoingResponse:
    """The part of an outgoing response a strategy may sign."""

    status_code: int
    headers: MutableHeaders


@dataclass(frozen=True)
class Capabilities:
    """Optional operations a registered strategy exposes."""

    authenticate_payload: bool = False
    sign_response: bool = False
    extend_request: bool = False

    @classmethod
    def of(cls, strategy: Any) -> Capabilities:
        """Describe ``strategy``.

        Built-in strategies declare their capabilities explicitly; any other
        object is probed for the optional operations.
        """
        declared = getattr(strategy, "capabilities", None)
        if isinstance(declared, Capabilities):
            return declared
        return cls(
            authenticate_payload=callable(getattr(strategy, "authenticate_payload", None)),
            sign_response=callable(getattr(strategy, "sign_response", None)),
            extend_request=callable(getattr(strategy, "extend_request", None)),
        )


__all__ = ["Capabilities", "OutgoingResponse", "Session", "Strategy"]
