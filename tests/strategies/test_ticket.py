"""Tests for TicketStrategy."""

from __future__ import annotations

import time

import jwt as pyjwt
import pytest

from authdispatch.errors import AuthChallenge, AuthFailure
from authdispatch.strategies.protocol import Strategy
from authdispatch.strategies.ticket import TicketClaims, TicketStrategy
from tests.conftest import make_request

SECRET = "ticket-test-secret-key-0123456789abcdef"


def _make_ticket(payload: dict, key: str = SECRET, algorithm: str = "HS256") -> str:
    return pyjwt.encode(payload, key, algorithm=algorithm)


def _request(header: str | None):
    return make_request(headers={"Authorization": header} if header is not None else None)


class TestTicketStrategyProtocol:
    def test_implements_strategy_protocol(self):
        assert isinstance(TicketStrategy(key=SECRET), Strategy)

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            TicketStrategy(key="")


class TestAuthenticate:
    def test_valid_ticket(self):
        strategy = TicketStrategy(key=SECRET)
        ticket = _make_ticket({"app": "app-1", "user": "user-1", "scope": ["read", "write"], "ext": {"tos": 2}})
        session = strategy.authenticate(_request(f"Bearer {ticket}"))
        assert session.app == "app-1"
        assert session.user == "user-1"
        assert session.scope == frozenset({"read", "write"})
        assert session.tos == 2
        assert session.artifacts["ticket"] == ticket

    def test_app_ticket_has_no_user(self):
        strategy = TicketStrategy(key=SECRET)
        session = strategy.authenticate(_request(f"Bearer {_make_ticket({'app': 'app-1'})}"))
        assert session.user is None
        assert session.scope == frozenset()

    def test_space_separated_scope(self):
        strategy = TicketStrategy(key=SECRET)
        session = strategy.authenticate(_request(f"Bearer {_make_ticket({'app': 'a', 'scope': 'read write'})}"))
        assert session.scope == frozenset({"read", "write"})

    def test_custom_claim_mapping(self):
        strategy = TicketStrategy(key=SECRET, claims=TicketClaims(user_claim="sub", app_claim="client"))
        ticket = _make_ticket({"client": "c-1", "sub": "s-1"})
        session = strategy.authenticate(_request(f"Bearer {ticket}"))
        assert (session.user, session.app) == ("s-1", "c-1")

    def test_claim_mapping_from_dict(self):
        strategy = TicketStrategy(key=SECRET, claims={"app_claim": "client"})
        session = strategy.authenticate(_request(f"Bearer {_make_ticket({'client': 'c-1'})}"))
        assert session.app == "c-1"


class TestMissingCredentials:
    def test_missing_authorization_header(self):
        with pytest.raises(AuthChallenge) as exc_info:
            TicketStrategy(key=SECRET).authenticate(_request(None))
        assert exc_info.value.challenge == "Bearer"
        assert exc_info.value.is_missing is True

    def test_other_scheme_is_missing(self):
        with pytest.raises(AuthChallenge):
            TicketStrategy(key=SECRET).authenticate(_request("Basic abc123"))

    def test_custom_header_scheme(self):
        strategy = TicketStrategy(key=SECRET, header_scheme="Ticket")
        with pytest.raises(AuthChallenge) as exc_info:
            strategy.authenticate(_request(f"Bearer {_make_ticket({'app': 'a'})}"))
        assert exc_info.value.challenge == "Ticket"
        assert strategy.authenticate(_request(f"Ticket {_make_ticket({'app': 'a'})}")).app == "a"


class TestInvalidCredentials:
    def test_empty_ticket(self):
        with pytest.raises(AuthFailure, match="Missing ticket"):
            TicketStrategy(key=SECRET).authenticate(_request("Bearer "))

    def test_expired_ticket(self):
        ticket = _make_ticket({"app": "a", "exp": int(time.time()) - 60})
        with pytest.raises(AuthFailure, match="Expired ticket"):
            TicketStrategy(key=SECRET).authenticate(_request(f"Bearer {ticket}"))

    def test_invalid_signature(self):
        ticket = _make_ticket({"app": "a"}, key="wrong-key-wrong-key-wrong-key-wrong")
        with pytest.raises(AuthFailure, match="Invalid ticket") as exc_info:
            TicketStrategy(key=SECRET).authenticate(_request(f"Bearer {ticket}"))
        assert exc_info.value.is_missing is False
        assert exc_info.value.status_code == 401

    def test_malformed_ticket(self):
        with pytest.raises(AuthFailure):
            TicketStrategy(key=SECRET).authenticate(_request("Bearer not.a.valid.ticket"))

    def test_missing_required_claim(self):
        with pytest.raises(AuthFailure):
            TicketStrategy(key=SECRET).authenticate(_request(f"Bearer {_make_ticket({'user': 'u'})}"))

    def test_audience_mismatch(self):
        strategy = TicketStrategy(key=SECRET, audience="svc-a")
        ticket = _make_ticket({"app": "a", "aud": "svc-b"})
        with pytest.raises(AuthFailure):
            strategy.authenticate(_request(f"Bearer {ticket}"))

    def test_issuer_match(self):
        strategy = TicketStrategy(key=SECRET, issuer="authority")
        ticket = _make_ticket({"app": "a", "iss": "authority"})
        assert strategy.authenticate(_request(f"Bearer {ticket}")).app == "a"
