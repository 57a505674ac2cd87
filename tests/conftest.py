"""Shared test fixtures for authdispatch tests."""

from __future__ import annotations

from typing import Any

import pytest
from starlette.requests import Request

from authdispatch.errors import AuthChallenge
from authdispatch.session import Session
from authdispatch.strategies.registry import StrategyRegistry

# ---------------------------------------------------------------------------
# Scripted strategies.
# These replay a fixed outcome so engine and policy tests need no real
# credentials.
# ---------------------------------------------------------------------------


class StubStrategy:
    """Returns ``outcome`` (or raises it, if it is an exception) and counts calls."""

    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.calls = 0

    async def authenticate(self, request: Request) -> Any:
        self.calls += 1
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class SigningStubStrategy(StubStrategy):
    """Stub that also verifies payloads and signs responses."""

    def __init__(self, outcome: Any, payload_error: Exception | None = None) -> None:
        super().__init__(outcome)
        self.payload_error = payload_error
        self.payload_calls: list[tuple[bytes, Session, str | None]] = []
        self.signed = 0

    async def authenticate_payload(self, raw_body: bytes, session: Session, content_type: str | None) -> None:
        self.payload_calls.append((raw_body, session, content_type))
        if self.payload_error is not None:
            raise self.payload_error

    async def sign_response(self, request: Request, session: Session, response: Any) -> None:
        self.signed += 1
        response.headers["Server-Authorization"] = f"signed-for-{session.user or session.app}"


class ExtendingStubStrategy(StubStrategy):
    """Stub that tags every request it sees before authentication."""

    def __init__(self, outcome: Any, tag: str) -> None:
        super().__init__(outcome)
        self.tag = tag

    def extend_request(self, request: Request) -> None:
        tags = getattr(request.state, "tags", [])
        request.state.tags = [*tags, self.tag]


class NoCredentialsStrategy:
    """Zero-argument strategy, loadable from an import string."""

    def authenticate(self, request: Request) -> Any:
        raise AuthChallenge("Test")


class AsyncExtendingStubStrategy(StubStrategy):
    """Stub whose ``extend_request`` is a coroutine."""

    def __init__(self, outcome: Any, value: str) -> None:
        super().__init__(outcome)
        self.value = value

    async def extend_request(self, request: Request) -> None:
        request.state.ticket_store = self.value


def make_request(
    path: str = "/",
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    query_string: bytes = b"",
    extra: dict[str, Any] | None = None,
) -> Request:
    """Build a Starlette request from a minimal HTTP scope."""
    scope: dict[str, Any] = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
        "path": path,
        "query_string": query_string,
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()],
    }
    if extra:
        scope.update(extra)
    return Request(scope)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> StrategyRegistry:
    return StrategyRegistry()


@pytest.fixture
def user_session() -> Session:
    return Session(user="u1", app="a1", scope=frozenset({"x"}), ext={"tos": 3})


@pytest.fixture
def app_session() -> Session:
    return Session(app="x", scope=frozenset({"a", "b"}))
