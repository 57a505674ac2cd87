"""URI-embedded signature strategy (single-use links carrying a ``bewit``)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from starlette.requests import Request

from authdispatch._utils import maybe_await
from authdispatch.errors import AuthChallenge, AuthFailure
from authdispatch.session import Session
from authdispatch.strategies.protocol import Capabilities


class UriSignatureStrategy:
    """Authenticates GET/HEAD requests whose URI carries a signature.

    Args:
        verify: ``verify(request, signature) -> Session`` (sync or async).
        param: Query parameter holding the signature.
        challenge: Challenge advertised when no signature is present.
    """

    capabilities = Capabilities()

    def __init__(self, verify: Callable[..., Any], *, param: str = "bewit", challenge: str | None = None) -> None:
        if not callable(verify):
            raise ValueError("URI signature strategy requires a verify callable")
        self._verify = verify
        self._param = param
        self._challenge = challenge

    async def authenticate(self, request: Request) -> Session:
        signature = request.query_params.get(self._param)
        if signature is None:
            raise AuthChallenge(self._challenge)
        if request.method not in ("GET", "HEAD"):
            raise AuthFailure("Invalid method", challenge=self._challenge)
        if "authorization" in request.headers:
            raise AuthFailure("Multiple authentications", status_code=400)
        if not signature:
            raise AuthFailure("Empty signature", challenge=self._challenge)

        session = await maybe_await(self._verify(request, signature))
        if session is None:
            raise AuthFailure("Bad signature", challenge=self._challenge)
        if isinstance(session, dict):
            session = Session.from_mapping(session)
        return session
