"""Post-authentication hooks: payload verification and response signing."""

from __future__ import annotations

import logging

from starlette.requests import Request

from authdispatch._utils import maybe_await
from authdispatch.constants import PAYLOAD_HASH_ARTIFACT, PayloadMode
from authdispatch.errors import AuthFailure
from authdispatch.policy import ResolvedPolicy, RoutePolicy
from authdispatch.session import RequestAuthState
from authdispatch.strategies.protocol import OutgoingResponse

logger = logging.getLogger(__name__)


class PayloadAuthenticator:
    """Verifies the raw request body against the credentials that signed it."""

    async def authenticate(
        self,
        policy: ResolvedPolicy,
        auth_state: RequestAuthState,
        raw_body: bytes,
        content_type: str | None,
    ) -> None:
        """Delegate to the bound strategy's ``authenticate_payload``.

        Raises:
            AuthError: When verification fails.
        """
        if not isinstance(policy, RoutePolicy) or policy.payload is PayloadMode.OFF:
            return
        if not auth_state.is_authenticated or auth_state.session is None:
            return

        session = auth_state.session
        capabilities = auth_state.capabilities
        supported = capabilities is not None and capabilities.authenticate_payload

        if policy.payload is PayloadMode.OPTIONAL:
            if not session.artifacts.get(PAYLOAD_HASH_ARTIFACT) or not supported:
                return
        elif not supported:
            raise AuthFailure("Payload verification unavailable")

        await maybe_await(auth_state.strategy.authenticate_payload(raw_body, session, content_type))
        logger.debug("Payload verified via %s", auth_state.strategy_name)


class ResponseSigner:
    """Lets the bound strategy decorate a successful response."""

    async def sign(self, request: Request, auth_state: RequestAuthState, response: OutgoingResponse) -> None:
        """Delegate to the bound strategy's ``sign_response``.

        Raises:
            AuthError: When signing fails.
        """
        if not auth_state.is_authenticated or auth_state.session is None:
            return
        capabilities = auth_state.capabilities
        if auth_state.strategy is None or capabilities is None or not capabilities.sign_response:
            return
        if response.status_code >= 400:
            return

        await maybe_await(auth_state.strategy.sign_response(request, auth_state.session, response))
        logger.debug("Response signed via %s", auth_state.strategy_name)
