"""Ticket-delegated strategy: bearer tickets issued by a separate authority."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import jwt as pyjwt
from starlette.requests import Request

from authdispatch._utils import split_authorization
from authdispatch.errors import AuthChallenge, AuthFailure
from authdispatch.session import Session
from authdispatch.strategies.protocol import Capabilities

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketClaims:
    """Maps ticket claims to ``Session`` fields.

    Attributes:
        user_claim: Claim used as ``Session.user``.
        app_claim: Claim used as ``Session.app``.
        scope_claim: Claim used as ``Session.scope`` (list or space separated string).
        ext_claim: Claim copied into ``Session.ext`` (expects an object).
    """

    user_claim: str = "user"
    app_claim: str = "app"
    scope_claim: str = "scope"
    ext_claim: str = "ext"


class TicketStrategy:
    """Validates delegated tickets carried as ``Authorization: <scheme> <ticket>``.

    Tickets are JWTs minted by the ticket authority; this strategy only
    verifies them.

    Args:
        key: Secret key or public key for verification.
        algorithms: Allowed ticket algorithms.
        audience: Expected ``aud`` claim (optional).
        issuer: Expected ``iss`` claim (optional).
        claims: Maps ticket claims to Session fields.
        require_claims: Claims that must be present in the ticket.
        header_scheme: Authorization scheme, also used as the challenge.
    """

    capabilities = Capabilities()

    def __init__(
        self,
        key: str,
        *,
        algorithms: list[str] | None = None,
        audience: str | None = None,
        issuer: str | None = None,
        claims: TicketClaims | dict[str, str] | None = None,
        require_claims: list[str] | None = None,
        header_scheme: str = "Bearer",
    ) -> None:
        if not key:
            raise ValueError("Ticket strategy requires a key")
        self._key = key
        self._algorithms = algorithms or ["HS256"]
        self._audience = audience
        self._issuer = issuer
        self._claims = TicketClaims(**claims) if isinstance(claims, dict) else claims or TicketClaims()
        self._require_claims: list[str] = require_claims if require_claims is not None else [self._claims.app_claim]
        self._header_scheme = header_scheme

    def authenticate(self, request: Request) -> Session:
        """Extract the ticket from the Authorization header and return a Session."""
        header = request.headers.get("authorization", "")
        scheme, ticket = split_authorization(header)
        if scheme.lower() != self._header_scheme.lower():
            raise AuthChallenge(self._header_scheme)
        if not ticket:
            raise AuthFailure("Missing ticket", challenge=self._header_scheme)

        payload = self._decode_ticket(ticket)
        return self._payload_to_session(ticket, payload)

    def _decode_ticket(self, ticket: str) -> dict[str, Any]:
        """Decode and validate a ticket. Raises AuthFailure on any error."""
        options: dict[str, Any] = {}
        if self._require_claims:
            options["require"] = self._require_claims

        kwargs: dict[str, Any] = {
            "jwt": ticket,
            "key": self._key,
            "algorithms": self._algorithms,
            "options": options,
        }
        if self._audience is not None:
            kwargs["audience"] = self._audience
        if self._issuer is not None:
            kwargs["issuer"] = self._issuer

        try:
            return pyjwt.decode(**kwargs)
        except pyjwt.ExpiredSignatureError:
            raise AuthFailure("Expired ticket", challenge=self._header_scheme) from None
        except pyjwt.InvalidTokenError:
            logger.debug("Ticket validation failed", exc_info=True)
            raise AuthFailure("Invalid ticket", challenge=self._header_scheme) from None

    def _payload_to_session(self, ticket: str, payload: dict[str, Any]) -> Session:
        """Convert a decoded ticket payload to a Session."""
        mapping = self._claims
        raw_scope = payload.get(mapping.scope_claim)
        if isinstance(raw_scope, str):
            scope = frozenset(raw_scope.split())
        elif isinstance(raw_scope, list):
            scope = frozenset(str(s) for s in raw_scope)
        else:
            scope = frozenset()

        raw_ext = payload.get(mapping.ext_claim)
        user = payload.get(mapping.user_claim)
        app = payload.get(mapping.app_claim)

        return Session(
            user=str(user) if user is not None else None,
            app=str(app) if app is not None else None,
            scope=scope,
            ext=dict(raw_ext) if isinstance(raw_ext, dict) else {},
            artifacts={"ticket": ticket, "claims": payload},
        )
