"""AuthDispatcher: owns the registry, route table, engine and hooks."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from starlette.requests import Request

from authdispatch._utils import maybe_await
from authdispatch.engine import AuthenticationEngine
from authdispatch.enforcer import PolicyEnforcer
from authdispatch.hooks import PayloadAuthenticator, ResponseSigner
from authdispatch.policy import DISABLED, ResolvedPolicy, RoutePolicy, RouteTable
from authdispatch.session import RequestAuthState
from authdispatch.strategies.protocol import OutgoingResponse
from authdispatch.strategies.registry import RegisteredStrategy, StrategyRegistry

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AuthDispatcher:
    """Entry point tying the authentication pipeline together.

    Strategies and routes are configured at startup; ``freeze()`` (called by
    ``AuthMiddleware``) ends the configuration phase.

    Args:
        registry: Strategy registry to use. A new one is created if omitted.
        log_level: Optional level for the ``authdispatch`` logger.
    """

    def __init__(self, registry: StrategyRegistry | None = None, *, log_level: str | None = None) -> None:
        if log_level is not None:
            if log_level.upper() not in _VALID_LOG_LEVELS:
                raise ValueError(f"Unknown log level: {log_level!r}. Valid: {sorted(_VALID_LOG_LEVELS)}")
            logging.getLogger("authdispatch").setLevel(getattr(logging, log_level.upper()))

        self.registry = registry or StrategyRegistry()
        self.routes = RouteTable(self.registry)
        self.engine = AuthenticationEngine(self.registry, PolicyEnforcer())
        self.payload_authenticator = PayloadAuthenticator()
        self.response_signer = ResponseSigner()

    # Configuration

    def add_strategy(self, name: str, options: Mapping[str, Any]) -> RegisteredStrategy:
        return self.registry.add(name, options)

    def add_strategies(self, options: Mapping[str, Any]) -> None:
        self.registry.add_batch(options)

    def route(self, path: str, auth: Any) -> ResolvedPolicy:
        """Attach authentication settings to a route path template."""
        return self.routes.add(path, auth)

    def freeze(self) -> None:
        if not self.registry.frozen:
            self.registry.freeze()
            logger.info(
                "Auth dispatcher ready: %d strategies, %d routes",
                len(self.registry),
                len(self.routes.items()),
            )

    # Per-request pipeline

    def resolve(self, request: Request) -> ResolvedPolicy:
        return self.routes.resolve(request)

    async def extend(self, request: Request) -> None:
        """Let extending strategies attach their request context."""
        for entry in self.registry.extensions:
            await maybe_await(entry.strategy.extend_request(request))

    async def authenticate(self, request: Request, policy: ResolvedPolicy) -> RequestAuthState:
        """Run the fallback engine and policy checks.

        Raises:
            AuthError: When the request is rejected.
        """
        if policy is DISABLED or not isinstance(policy, RoutePolicy):
            return RequestAuthState()
        return await self.engine.authenticate(request, policy)

    async def authenticate_payload(
        self,
        policy: ResolvedPolicy,
        auth_state: RequestAuthState,
        raw_body: bytes,
        content_type: str | None,
    ) -> None:
        await self.payload_authenticator.authenticate(policy, auth_state, raw_body, content_type)

    async def sign_response(self, request: Request, auth_state: RequestAuthState, response: OutgoingResponse) -> None:
        await self.response_signer.sign(request, auth_state, response)
