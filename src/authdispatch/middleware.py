"""ASGI middleware that runs the authentication pipeline for each request."""

from __future__ import annotations

import logging
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.requests import Request

from authdispatch.adapters.errors import ErrorMapper
from authdispatch.constants import AUTH_STATE_ATTR, PayloadMode
from authdispatch.dispatcher import AuthDispatcher
from authdispatch.errors import AuthError
from authdispatch.policy import RoutePolicy
from authdispatch.session import RequestAuthState
from authdispatch.strategies.protocol import OutgoingResponse

logger = logging.getLogger(__name__)


class AuthMiddleware:
    """ASGI middleware that authenticates requests and sets ``request.state.auth``.

    Args:
        app: The ASGI application to wrap.
        dispatcher: Configured ``AuthDispatcher``. It is frozen on construction.
        error_mapper: Renders rejected requests. Defaults to ``ErrorMapper``.
    """

    def __init__(
        self,
        app: Any,
        dispatcher: AuthDispatcher,
        *,
        error_mapper: ErrorMapper | None = None,
    ) -> None:
        self._app = app
        self._dispatcher = dispatcher
        self._error_mapper = error_mapper or ErrorMapper()
        dispatcher.freeze()

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self._app(scope, receive, send)
            return

        request = Request(scope, receive)
        policy = self._dispatcher.resolve(request)
        if not isinstance(policy, RoutePolicy):
            await self._app(scope, receive, send)
            return

        await self._dispatcher.extend(request)
        try:
            auth_state = await self._dispatcher.authenticate(request, policy)
        except AuthError as exc:
            await self._send_error(exc, scope, receive, send)
            return

        setattr(request.state, AUTH_STATE_ATTR, auth_state)

        if policy.payload is not PayloadMode.OFF and auth_state.is_authenticated:
            body = await request.body()
            try:
                await self._dispatcher.authenticate_payload(
                    policy, auth_state, body, request.headers.get("content-type")
                )
            except AuthError as exc:
                await self._send_error(exc, scope, receive, send)
                return
            receive = self._replay_body(body, receive)

        if auth_state.is_authenticated:
            send = self._signing_send(request, auth_state, scope, receive, send)

        await self._app(scope, receive, send)

    def _signing_send(
        self,
        request: Request,
        auth_state: RequestAuthState,
        scope: dict[str, Any],
        receive: Any,
        send: Any,
    ) -> Any:
        """Wrap ``send`` so the bound strategy can sign the response headers."""
        replaced = False

        async def signing_send(message: dict[str, Any]) -> None:
            nonlocal replaced
            if replaced:
                return
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                response = OutgoingResponse(status_code=message["status"], headers=MutableHeaders(scope=message))
                try:
                    await self._dispatcher.sign_response(request, auth_state, response)
                except AuthError as exc:
                    replaced = True
                    await self._send_error(exc, scope, receive, send)
                    return
            await send(message)

        return signing_send

    @staticmethod
    def _replay_body(body: bytes, receive: Any) -> Any:
        """Return a ``receive`` that yields the already-consumed body first."""
        consumed = False

        async def replay() -> dict[str, Any]:
            nonlocal consumed
            if not consumed:
                consumed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        return replay

    async def _send_error(self, error: AuthError, scope: dict[str, Any], receive: Any, send: Any) -> None:
        """Send the mapped error response for ``error``."""
        logger.debug("Rejecting %s with %d: %s", scope.get("path", ""), error.status_code, error.message)
        response = self._error_mapper.to_response(error)
        await response(scope, receive, send)
