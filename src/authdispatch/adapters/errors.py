"""ErrorMapper: authdispatch error hierarchy → HTTP error responses."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any

from starlette.responses import JSONResponse, Response

from authdispatch.errors import AuthError, AuthFailure, ProtocolViolation


class ErrorMapper:
    """Maps authentication errors to Starlette responses."""

    def to_error_dict(self, error: Exception) -> dict[str, Any]:
        """
        Convert any exception to an error body dict.

        Returns:
            dict with keys:
                - error: str (HTTP status phrase)
                - message: str (safe error message)
                - reason: str | None (machine-readable policy violation reason)
                - details: dict | None (optional additional context)
        """
        if not isinstance(error, AuthError) or isinstance(error, ProtocolViolation):
            # Internal errors: sanitize completely
            return {
                "error": self._phrase(500),
                "message": "Internal error occurred",
                "reason": None,
                "details": None,
            }

        return {
            "error": self._phrase(error.status_code),
            "message": error.message,
            "reason": error.reason,
            "details": error.details or None,
        }

    def to_response(self, error: Exception) -> Response:
        """Build the response sent to the client for ``error``."""
        if isinstance(error, AuthFailure) and error.response is not None:
            return error.response

        status_code = error.status_code if isinstance(error, AuthError) else 500
        if isinstance(error, ProtocolViolation):
            status_code = 500
        headers = dict(error.headers) if isinstance(error, AuthError) and status_code != 500 else None
        return JSONResponse(self.to_error_dict(error), status_code=status_code, headers=headers)

    @staticmethod
    def _phrase(status_code: int) -> str:
        try:
            return HTTPStatus(status_code).phrase
        except ValueError:
            return "Error"
