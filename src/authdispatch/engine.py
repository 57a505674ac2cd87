"""AuthenticationEngine: ordered fallback across a route's strategies.

The fallback protocol is expressed as a pure function, ``transition``, which
maps the current state and one strategy outcome to the next state. The
engine only performs the I/O: it awaits the strategy named by each
``Trying`` state and feeds the outcome back into ``transition``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from starlette.requests import Request

from authdispatch._utils import maybe_await
from authdispatch.constants import INJECTED_SESSION_KEY, Mode
from authdispatch.enforcer import PolicyEnforcer
from authdispatch.errors import AuthError, ProtocolViolation, Unauthorized
from authdispatch.policy import RoutePolicy
from authdispatch.session import RequestAuthState, Session
from authdispatch.strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Trying:
    index: int
    challenges: tuple[str, ...] = ()


@dataclass(frozen=True)
class Authenticated:
    session: Session
    index: int | None
    challenges: tuple[str, ...] = ()


@dataclass(frozen=True)
class Unauthenticated:
    error: AuthError | None = None
    challenges: tuple[str, ...] = ()


@dataclass(frozen=True)
class Rejected:
    error: AuthError


EngineState = Union[Trying, Authenticated, Unauthenticated, Rejected]
Outcome = Union[Session, AuthError, None]


def is_missing_credentials(error: AuthError) -> bool:
    """True when a strategy merely found no credentials to check."""
    return error.is_missing and error.status_code == 401


def transition(policy: RoutePolicy, state: Trying, outcome: Outcome) -> EngineState:
    """Compute the state following ``outcome`` of ``policy.strategies[state.index]``.

    Args:
        policy: The route policy being enforced.
        state: The current (non-terminal) state.
        outcome: The Session returned by the strategy, the AuthError it
            raised, or anything else it returned.

    Returns:
        The next state. ``Trying`` is returned only while strategies remain.
    """
    if isinstance(outcome, Session):
        return Authenticated(session=outcome, index=state.index, challenges=state.challenges)

    if not isinstance(outcome, AuthError):
        return Rejected(ProtocolViolation())

    if not is_missing_credentials(outcome):
        if policy.mode is Mode.TRY:
            return Unauthenticated(error=outcome, challenges=state.challenges)
        return Rejected(outcome)

    challenges = state.challenges
    challenge = outcome.headers.get("WWW-Authenticate")
    if challenge:
        challenges = (*challenges, challenge)

    next_index = state.index + 1
    if next_index < len(policy.strategies):
        return Trying(index=next_index, challenges=challenges)

    if policy.mode in (Mode.OPTIONAL, Mode.TRY):
        return Unauthenticated(challenges=challenges)
    return Rejected(Unauthorized("Missing authentication", list(challenges)))


class AuthenticationEngine:
    """Drives ``transition`` for one request at a time.

    Args:
        registry: Registry holding the strategies named by route policies.
        enforcer: Authorization checks applied after a strategy succeeds.
    """

    def __init__(self, registry: StrategyRegistry, enforcer: PolicyEnforcer | None = None) -> None:
        self._registry = registry
        self._enforcer = enforcer or PolicyEnforcer()

    async def run(self, request: Request, policy: RoutePolicy) -> EngineState:
        """Consult the policy's strategies in order until a terminal state."""
        injected = request.scope.get(INJECTED_SESSION_KEY)
        if injected is not None:
            session = injected if isinstance(injected, Session) else Session.from_mapping(injected)
            return Authenticated(session=session, index=None)

        state: EngineState = Trying(0)
        while isinstance(state, Trying):
            name = policy.strategies[state.index]
            entry = self._registry.get(name)
            outcome: Any
            try:
                outcome = await maybe_await(entry.strategy.authenticate(request))
            except AuthError as exc:
                outcome = exc
            if isinstance(outcome, Mapping):
                outcome = Session.from_mapping(outcome)
            if isinstance(outcome, AuthError) and is_missing_credentials(outcome):
                logger.debug("Strategy '%s' found no credentials", name)
            state = transition(policy, state, outcome)
        return state

    async def authenticate(self, request: Request, policy: RoutePolicy) -> RequestAuthState:
        """Authenticate ``request`` and enforce the route policy.

        Returns:
            The request's auth state; ``is_authenticated`` is False when the
            route tolerates an unauthenticated request.

        Raises:
            AuthError: When the request is rejected.
        """
        auth_state = RequestAuthState()
        state = await self.run(request, policy)

        if isinstance(state, Rejected):
            if isinstance(state.error, ProtocolViolation):
                logger.error("Strategy broke the authentication contract on %s", request.url.path)
            else:
                logger.debug("Authentication rejected on %s: %s", request.url.path, state.error.message)
            raise state.error

        auth_state.challenges = list(state.challenges)

        if isinstance(state, Unauthenticated):
            if state.error is not None:
                logger.debug("Authentication failed in try mode on %s: %s", request.url.path, state.error.message)
            else:
                logger.debug("Request unauthenticated on %s", request.url.path)
            return auth_state

        if state.index is None:
            auth_state.bind(state.session)
        else:
            entry = self._registry.get(policy.strategies[state.index])
            auth_state.bind(state.session, entry.strategy, entry.name, entry.capabilities)

        self._enforcer.enforce(policy, auth_state)
        return auth_state
