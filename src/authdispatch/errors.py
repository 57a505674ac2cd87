"""Error taxonomy for registration, route setup and request authentication."""

from __future__ import annotations

from typing import Any


class ConfigurationError(ValueError):
    """Invalid strategy registration. Raised at startup."""


class PolicyValidationError(ValueError):
    """Invalid per-route authentication configuration. Raised at route setup."""


class AuthError(Exception):
    """Base class for errors produced while authenticating a request.

    Attributes:
        status_code: HTTP status delivered to the client.
        message: Human readable message.
        details: Optional machine-readable context.
        headers: Extra response headers (e.g. ``WWW-Authenticate``).
        is_missing: True only when the strategy found no credentials at all.
    """

    status_code: int = 500
    is_missing: bool = False

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.headers: dict[str, str] = dict(headers or {})

    @property
    def reason(self) -> str | None:
        return None


class AuthChallenge(AuthError):
    """Credentials are absent. The engine moves on to the next strategy."""

    status_code = 401
    is_missing = True

    def __init__(self, challenge: str | None = None, message: str = "Missing authentication") -> None:
        headers = {"WWW-Authenticate": challenge} if challenge else None
        super().__init__(message, headers=headers)
        self.challenge = challenge


class AuthFailure(AuthError):
    """Credentials are present but rejected.

    A strategy may attach a ready-made ``response`` (for example a redirect to
    a login page) that is sent instead of the default error body.
    """

    status_code = 401

    def __init__(
        self,
        message: str,
        *,
        challenge: str | None = None,
        status_code: int | None = None,
        response: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        headers = {"WWW-Authenticate": challenge} if challenge else None
        super().__init__(message, details=details, headers=headers)
        if status_code is not None:
            self.status_code = status_code
        self.response = response


class Unauthorized(AuthError):
    """Required authentication failed after every strategy was tried."""

    status_code = 401

    def __init__(self, message: str = "Missing authentication", challenges: list[str] | None = None) -> None:
        self.challenges = list(challenges or [])
        headers = {"WWW-Authenticate": ", ".join(self.challenges)} if self.challenges else None
        super().__init__(message, headers=headers)


class PolicyViolation(AuthError):
    """Session does not satisfy the route's authorization policy."""

    status_code = 403

    def __init__(self, reason: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self._reason = reason

    @property
    def reason(self) -> str:
        return self._reason


class ProtocolViolation(AuthError):
    """A strategy broke the authenticate contract."""

    status_code = 500

    def __init__(self, message: str = "Authentication response missing both error and session") -> None:
        super().__init__(message)
