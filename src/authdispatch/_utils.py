"""Internal utility functions for authdispatch."""

from __future__ import annotations

import importlib
import inspect
import re
from typing import Any

_ATTRIBUTE_RE = re.compile(r'(\w+)="([^"\\]*)"\s*(?:,\s*|$)')


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


def resolve_import_string(target: str) -> Any:
    """Resolve ``"package.module:attribute"`` to the referenced object."""
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Import string must look like 'module:attribute', got {target!r}")
    obj: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        obj = getattr(obj, attr)
    return obj


def split_authorization(header: str) -> tuple[str, str]:
    """Split an Authorization header into ``(scheme, credentials)``."""
    scheme, _, credentials = header.strip().partition(" ")
    return scheme, credentials.strip()


def parse_header_attributes(credentials: str) -> dict[str, str] | None:
    """Parse ``k1="v1", k2="v2"`` attribute lists.

    Returns None when the string is not a well-formed attribute list.
    """
    attributes: dict[str, str] = {}
    pos = 0
    credentials = credentials.strip()
    while pos < len(credentials):
        match = _ATTRIBUTE_RE.match(credentials, pos)
        if match is None:
            return None
        key, value = match.groups()
        if key in attributes:
            return None
        attributes[key] = value
        pos = match.end()
    return attributes
