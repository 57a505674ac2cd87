"""Tests for the fallback state machine and AuthenticationEngine."""

from __future__ import annotations

import pytest

from authdispatch.constants import INJECTED_SESSION_KEY, Entity, Mode
from authdispatch.engine import (
    Authenticated,
    AuthenticationEngine,
    Rejected,
    Trying,
    Unauthenticated,
    transition,
)
from authdispatch.errors import (
    AuthChallenge,
    AuthFailure,
    PolicyViolation,
    ProtocolViolation,
    Unauthorized,
)
from authdispatch.policy import RoutePolicy
from authdispatch.session import Session
from authdispatch.strategies.registry import StrategyRegistry
from tests.conftest import StubStrategy, make_request


def _policy(mode: Mode = Mode.REQUIRED, strategies: tuple[str, ...] = ("A", "B"), **kwargs) -> RoutePolicy:
    return RoutePolicy(strategies=strategies, mode=mode, **kwargs)


# ---------------------------------------------------------------------------
# transition(): pure state function
# ---------------------------------------------------------------------------


class TestTransition:
    def test_session_authenticates_at_current_index(self):
        session = Session(user="u1")
        state = transition(_policy(), Trying(1, ("A-scheme",)), session)
        assert state == Authenticated(session=session, index=1, challenges=("A-scheme",))

    def test_missing_credentials_advance_and_collect_challenge(self):
        state = transition(_policy(), Trying(0), AuthChallenge("A-scheme"))
        assert state == Trying(1, ("A-scheme",))

    def test_missing_credentials_without_challenge_advance(self):
        state = transition(_policy(), Trying(0), AuthChallenge())
        assert state == Trying(1, ())

    def test_exhaustion_in_required_mode_rejects_with_challenges(self):
        state = transition(_policy(), Trying(1, ("A-scheme",)), AuthChallenge("B-scheme"))
        assert isinstance(state, Rejected)
        assert isinstance(state.error, Unauthorized)
        assert state.error.challenges == ["A-scheme", "B-scheme"]
        assert state.error.headers["WWW-Authenticate"] == "A-scheme, B-scheme"

    @pytest.mark.parametrize("mode", [Mode.OPTIONAL, Mode.TRY])
    def test_exhaustion_in_lenient_modes_is_unauthenticated(self, mode):
        state = transition(_policy(mode), Trying(1, ("A-scheme",)), AuthChallenge("B-scheme"))
        assert state == Unauthenticated(challenges=("A-scheme", "B-scheme"))

    def test_hard_failure_rejects_in_required_mode(self):
        failure = AuthFailure("Bad mac")
        assert transition(_policy(), Trying(0), failure) == Rejected(failure)

    def test_hard_failure_rejects_in_optional_mode(self):
        failure = AuthFailure("Bad mac")
        assert transition(_policy(Mode.OPTIONAL), Trying(0), failure) == Rejected(failure)

    def test_hard_failure_stops_chain_in_try_mode(self):
        failure = AuthFailure("Bad mac")
        state = transition(_policy(Mode.TRY), Trying(0), failure)
        assert state == Unauthenticated(error=failure)

    def test_missing_with_non_401_status_is_a_hard_failure(self):
        challenge = AuthChallenge("A-scheme")
        challenge.status_code = 407
        assert isinstance(transition(_policy(), Trying(0), challenge), Rejected)

    @pytest.mark.parametrize("mode", list(Mode))
    def test_neither_error_nor_session_is_a_protocol_violation(self, mode):
        state = transition(_policy(mode), Trying(0), None)
        assert isinstance(state, Rejected)
        assert isinstance(state.error, ProtocolViolation)
        assert state.error.status_code == 500


# ---------------------------------------------------------------------------
# AuthenticationEngine: drives strategies in order
# ---------------------------------------------------------------------------


def _engine(**strategies: StubStrategy) -> AuthenticationEngine:
    registry = StrategyRegistry()
    for name, strategy in strategies.items():
        registry.add(name, {"implementation": strategy})
    registry.freeze()
    return AuthenticationEngine(registry)


class TestAuthenticationEngine:
    async def test_required_mode_collects_challenges_in_order(self):
        a = StubStrategy(AuthChallenge("A-scheme"))
        b = StubStrategy(AuthChallenge("B-scheme"))
        engine = _engine(A=a, B=b)

        with pytest.raises(Unauthorized) as exc_info:
            await engine.authenticate(make_request(), _policy())
        assert exc_info.value.challenges == ["A-scheme", "B-scheme"]
        assert exc_info.value.status_code == 401

    async def test_optional_mode_proceeds_unauthenticated(self):
        engine = _engine(A=StubStrategy(AuthChallenge("A-scheme")), B=StubStrategy(AuthChallenge("B-scheme")))

        state = await engine.authenticate(make_request(), _policy(Mode.OPTIONAL))
        assert state.is_authenticated is False
        assert state.session is None
        assert state.challenges == ["A-scheme", "B-scheme"]

    async def test_try_mode_hard_failure_skips_remaining_strategies(self):
        a = StubStrategy(AuthFailure("Bad mac"))
        b = StubStrategy(Session(user="u1"))
        engine = _engine(A=a, B=b)

        state = await engine.authenticate(make_request(), _policy(Mode.TRY))
        assert state.is_authenticated is False
        assert state.session is None
        assert a.calls == 1
        assert b.calls == 0

    async def test_required_mode_surfaces_hard_failure(self):
        failure = AuthFailure("Bad mac")
        b = StubStrategy(Session(user="u1"))
        engine = _engine(A=StubStrategy(failure), B=b)

        with pytest.raises(AuthFailure) as exc_info:
            await engine.authenticate(make_request(), _policy())
        assert exc_info.value is failure
        assert b.calls == 0

    async def test_fallback_binds_second_strategy(self):
        a = StubStrategy(AuthChallenge("A-scheme"))
        b = StubStrategy(Session(user="u1", scope=frozenset({"x"})))
        engine = _engine(A=a, B=b)

        state = await engine.authenticate(make_request(), _policy(scope="x"))
        assert state.is_authenticated is True
        assert state.strategy is b
        assert state.strategy_name == "B"
        assert state.session.user == "u1"
        assert state.capabilities.sign_response is False

    async def test_first_success_stops_chain(self):
        a = StubStrategy(Session(app="app-1"))
        b = StubStrategy(Session(user="u1"))
        engine = _engine(A=a, B=b)

        state = await engine.authenticate(make_request(), _policy())
        assert state.strategy_name == "A"
        assert b.calls == 0

    async def test_strategy_returning_none_is_internal_error(self):
        engine = _engine(A=StubStrategy(None), B=StubStrategy(Session(user="u1")))
        with pytest.raises(ProtocolViolation):
            await engine.authenticate(make_request(), _policy(Mode.TRY))

    async def test_mapping_outcome_is_converted_to_session(self):
        engine = _engine(A=StubStrategy({"user": "u1", "scope": ["x"]}))
        state = await engine.authenticate(make_request(), _policy(strategies=("A",)))
        assert state.session == Session(user="u1", scope=frozenset({"x"}))

    async def test_sync_strategies_are_supported(self):
        class SyncStrategy:
            def authenticate(self, request):
                return Session(user="sync")

        registry = StrategyRegistry()
        registry.add("A", {"implementation": SyncStrategy()})
        state = await AuthenticationEngine(registry).authenticate(make_request(), _policy(strategies=("A",)))
        assert state.session.user == "sync"

    async def test_unexpected_exceptions_propagate(self):
        engine = _engine(A=StubStrategy(RuntimeError("ticket store down")))
        with pytest.raises(RuntimeError, match="ticket store down"):
            await engine.authenticate(make_request(), _policy(Mode.TRY, strategies=("A",)))

    async def test_injected_session_bypasses_strategies(self):
        a = StubStrategy(AuthFailure("never"))
        engine = _engine(A=a)
        request = make_request(extra={INJECTED_SESSION_KEY: {"user": "trusted"}})

        state = await engine.authenticate(request, _policy(strategies=("A",)))
        assert state.is_authenticated is True
        assert state.session.user == "trusted"
        assert state.strategy is None
        assert a.calls == 0

    async def test_injected_session_still_checks_policy(self):
        engine = _engine(A=StubStrategy(AuthFailure("never")))
        request = make_request(extra={INJECTED_SESSION_KEY: Session(app="svc")})

        with pytest.raises(PolicyViolation) as exc_info:
            await engine.authenticate(request, _policy(strategies=("A",), scope="admin"))
        assert exc_info.value.reason == "insufficient_scope"

    async def test_policy_violation_after_success_is_terminal(self):
        b = StubStrategy(Session(user="u1"))
        engine = _engine(A=StubStrategy(Session(app="x")), B=b)

        with pytest.raises(PolicyViolation):
            await engine.authenticate(make_request(), _policy(entity=Entity.USER))
        assert b.calls == 0
