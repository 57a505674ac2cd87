"""Signed-cookie strategy for browser sessions.

The cookie is an HS256-signed JWT: tamper-proof but not encrypted, so its
``scope`` and ``ext`` are readable by the client.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import jwt as pyjwt
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from authdispatch.errors import AuthChallenge, AuthFailure
from authdispatch.session import Session
from authdispatch.strategies.protocol import Capabilities

logger = logging.getLogger(__name__)


class CookieSessionHelper:
    """Per-request helper attached as ``request.state.<helper_name>``.

    Endpoints use it to start or end a cookie session on their response.
    """

    def __init__(self, strategy: CookieStrategy) -> None:
        self._strategy = strategy

    @property
    def cookie_name(self) -> str:
        return self._strategy.cookie_name

    def set(self, response: Response, session: Session | dict[str, Any]) -> None:
        """Sign ``session`` into the cookie on ``response``."""
        data = session if isinstance(session, dict) else _session_to_dict(session)
        response.set_cookie(
            self._strategy.cookie_name,
            self._strategy.seal(data),
            max_age=self._strategy.ttl,
            path=self._strategy.path,
            secure=self._strategy.secure,
            httponly=True,
            samesite="lax",
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(self._strategy.cookie_name, path=self._strategy.path)


class CookieStrategy:
    """Authenticates requests carrying a session cookie signed with PyJWT.

    Args:
        password: Secret used to sign and verify the cookie.
        cookie: Cookie name.
        ttl: Cookie lifetime in seconds (None for a browser session cookie).
        redirect_to: Login page to redirect to instead of returning 401.
        path: Cookie path.
        secure: Mark the cookie as secure.
        helper_name: ``request.state`` attribute receiving the helper.
    """

    capabilities = Capabilities(extend_request=True)

    def __init__(
        self,
        password: str,
        *,
        cookie: str = "sid",
        ttl: int | None = None,
        redirect_to: str | None = None,
        path: str = "/",
        secure: bool = True,
        helper_name: str = "cookie_auth",
    ) -> None:
        if not password or len(password) < 32:
            raise ValueError("Cookie strategy requires a password of at least 32 characters")
        self._password = password
        self.cookie_name = cookie
        self.ttl = ttl
        self.path = path
        self.secure = secure
        self._redirect_to = redirect_to
        self._helper_name = helper_name

    def seal(self, data: dict[str, Any]) -> str:
        """Return ``data`` as a signed (not encrypted) cookie value."""
        payload = dict(data)
        if self.ttl is not None:
            payload["exp"] = int(time.time()) + self.ttl
        return pyjwt.encode(payload, self._password, algorithm="HS256")

    def extend_request(self, request: Request) -> None:
        setattr(request.state, self._helper_name, CookieSessionHelper(self))

    def authenticate(self, request: Request) -> Session:
        sealed = request.cookies.get(self.cookie_name)
        if not sealed:
            raise AuthChallenge()

        try:
            payload = pyjwt.decode(sealed, self._password, algorithms=["HS256"])
        except pyjwt.InvalidTokenError:
            logger.debug("Invalid session cookie '%s'", self.cookie_name, exc_info=True)
            raise self._reject("Invalid cookie") from None

        payload.pop("exp", None)
        return Session.from_mapping(payload)

    def _reject(self, message: str) -> AuthFailure:
        if self._redirect_to is None:
            return AuthFailure(message)
        response = RedirectResponse(self._redirect_to, status_code=302)
        response.delete_cookie(self.cookie_name, path=self.path)
        return AuthFailure(message, status_code=302, response=response)


def _session_to_dict(session: Session) -> dict[str, Any]:
    data: dict[str, Any] = {"scope": sorted(session.scope), "ext": session.ext}
    if session.user is not None:
        data["user"] = session.user
    if session.app is not None:
        data["app"] = session.app
    return data
