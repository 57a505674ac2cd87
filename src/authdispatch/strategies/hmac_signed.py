"""HMAC request-signed strategy (``Authorization: Hawk ...``).

Header parsing and failure classification live here. The MAC itself is
checked by the ``verify`` callable supplied at registration, which receives
the request and the parsed header attributes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from starlette.requests import Request

from authdispatch._utils import maybe_await, parse_header_attributes, split_authorization
from authdispatch.errors import AuthChallenge, AuthFailure
from authdispatch.session import Session
from authdispatch.strategies.protocol import Capabilities, OutgoingResponse

logger = logging.getLogger(__name__)

REQUIRED_ATTRIBUTES = ("id", "ts", "nonce", "mac")


class HmacStrategy:
    """Authenticates requests signed with a shared key.

    Args:
        verify: ``verify(request, attributes) -> Session`` (sync or async).
            Raise ``AuthFailure`` or return None to reject.
        verify_payload: Optional ``verify_payload(raw_body, session, content_type)``
            returning False or raising ``AuthFailure`` when the body hash
            does not match.
        sign: Optional ``sign(request, session, response) -> str`` producing
            the ``Server-Authorization`` header value.
        header_scheme: Authorization scheme, also used as the challenge.
    """

    def __init__(
        self,
        verify: Callable[..., Any],
        *,
        verify_payload: Callable[..., Any] | None = None,
        sign: Callable[..., Any] | None = None,
        header_scheme: str = "Hawk",
    ) -> None:
        if not callable(verify):
            raise ValueError("HMAC strategy requires a verify callable")
        self._verify = verify
        self._verify_payload = verify_payload
        self._sign = sign
        self._header_scheme = header_scheme

    @property
    def capabilities(self) -> Capabilities:
        return Capabilities(
            authenticate_payload=self._verify_payload is not None,
            sign_response=self._sign is not None,
        )

    async def authenticate(self, request: Request) -> Session:
        header = request.headers.get("authorization", "")
        scheme, credentials = split_authorization(header)
        if scheme.lower() != self._header_scheme.lower():
            raise AuthChallenge(self._header_scheme)

        attributes = parse_header_attributes(credentials)
        if attributes is None:
            raise AuthFailure("Bad header format", status_code=400)
        missing = [name for name in REQUIRED_ATTRIBUTES if not attributes.get(name)]
        if missing:
            raise AuthFailure(f"Missing attributes: {', '.join(missing)}", status_code=400)

        session = await maybe_await(self._verify(request, attributes))
        if session is None:
            raise AuthFailure("Bad mac", challenge=self._header_scheme)
        if isinstance(session, dict):
            session = Session.from_mapping(session)
        return replace(session, artifacts={**session.artifacts, **attributes})

    async def authenticate_payload(self, raw_body: bytes, session: Session, content_type: str | None) -> None:
        if self._verify_payload is None:
            raise AuthFailure("Payload verification not configured", status_code=500)
        valid = await maybe_await(self._verify_payload(raw_body, session, content_type))
        if valid is False:
            logger.debug("Payload hash mismatch for session %s", session.app or session.user)
            raise AuthFailure("Payload is invalid")

    async def sign_response(self, request: Request, session: Session, response: OutgoingResponse) -> None:
        if self._sign is None:
            return
        header = await maybe_await(self._sign(request, session, response))
        if header:
            response.headers["Server-Authorization"] = header
