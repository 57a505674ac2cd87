"""Session and per-request authentication state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Session:
    """Authenticated principal context produced by a strategy.

    Attributes:
        user: User principal id, if the credentials belong to a user.
        app: Application principal id.
        scope: Authorization tags granted to the session.
        ext: Extension data (``ext["tos"]`` holds the accepted TOS version).
        artifacts: Protocol-specific signed material (e.g. header attributes).
    """

    user: str | None = None
    app: str | None = None
    scope: frozenset[str] = frozenset()
    ext: dict[str, Any] = field(default_factory=dict)
    artifacts: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.scope, str):
            self.scope = frozenset({self.scope})
        elif not isinstance(self.scope, frozenset):
            self.scope = frozenset(self.scope or ())

    @property
    def tos(self) -> Any:
        return self.ext.get("tos")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Session:
        """Build a Session from a plain mapping, ignoring unknown keys."""
        scope: Iterable[str] | str | None = data.get("scope")
        return cls(
            user=data.get("user"),
            app=data.get("app"),
            scope=frozenset({scope}) if isinstance(scope, str) else frozenset(scope or ()),
            ext=dict(data.get("ext") or {}),
            artifacts=dict(data.get("artifacts") or {}),
        )


@dataclass
class RequestAuthState:
    """Authentication outcome attached to a single request.

    ``strategy`` and ``capabilities`` describe the strategy that produced the
    session; both stay None for an injected session.
    """

    is_authenticated: bool = False
    session: Session | None = None
    strategy: Any = None
    strategy_name: str | None = None
    capabilities: Any = None
    challenges: list[str] = field(default_factory=list)

    def bind(
        self,
        session: Session,
        strategy: Any = None,
        strategy_name: str | None = None,
        capabilities: Any = None,
    ) -> None:
        self.session = session
        self.strategy = strategy
        self.strategy_name = strategy_name
        self.capabilities = capabilities
