"""Adapters between authdispatch and the HTTP layer."""

from authdispatch.adapters.errors import ErrorMapper

__all__ = ["ErrorMapper"]
