"""Static-credential strategy (``Authorization: Basic``)."""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
from collections.abc import Callable, Mapping
from typing import Any

from starlette.requests import Request

from authdispatch._utils import maybe_await, split_authorization
from authdispatch.errors import AuthChallenge, AuthFailure
from authdispatch.session import Session
from authdispatch.strategies.protocol import Capabilities

logger = logging.getLogger(__name__)


class StaticCredentialStrategy:
    """Looks up username/password pairs.

    Exactly one of ``validate`` and ``credentials`` must be given.

    Args:
        validate: ``validate(username, password) -> Session | None``.
        credentials: ``{username: {"password": ..., "user": ..., "scope": [...], "ext": {...}}}``.
        realm: Realm advertised in the challenge.
    """

    capabilities = Capabilities()

    def __init__(
        self,
        *,
        validate: Callable[..., Any] | None = None,
        credentials: Mapping[str, Mapping[str, Any]] | None = None,
        realm: str = "protected",
    ) -> None:
        if (validate is None) == (credentials is None):
            raise ValueError("Static credential strategy requires exactly one of validate or credentials")
        if validate is not None and not callable(validate):
            raise ValueError("validate must be callable")
        self._validate = validate
        self._credentials = dict(credentials or {})
        self._challenge = f'Basic realm="{realm}"'

    async def authenticate(self, request: Request) -> Session:
        header = request.headers.get("authorization", "")
        scheme, encoded = split_authorization(header)
        if scheme.lower() != "basic":
            raise AuthChallenge(self._challenge)
        if not encoded:
            raise AuthFailure("Bad header encoding", status_code=400)

        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise AuthFailure("Bad header encoding", status_code=400) from None

        username, sep, password = decoded.partition(":")
        if not sep or not username:
            raise AuthFailure("HTTP authentication header missing username", status_code=400)

        session = await self._lookup(username, password)
        if session is None:
            logger.debug("Rejected credentials for %s", username)
            raise AuthFailure("Bad username or password", challenge=self._challenge)
        return session

    async def _lookup(self, username: str, password: str) -> Session | None:
        if self._validate is not None:
            result = await maybe_await(self._validate(username, password))
            if isinstance(result, dict):
                return Session.from_mapping(result)
            return result

        entry = self._credentials.get(username)
        if entry is None:
            return None
        expected = str(entry.get("password", ""))
        if not hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8")):
            return None
        data = {key: value for key, value in entry.items() if key != "password"}
        data.setdefault("user", username)
        return Session.from_mapping(data)
