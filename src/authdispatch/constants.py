"""Enumerations and well-known keys shared across authdispatch."""

from __future__ import annotations

from enum import Enum


class Mode(str, Enum):
    """How strictly a route requires a successful authentication."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    TRY = "try"


class Entity(str, Enum):
    """Principal kind a route accepts."""

    ANY = "any"
    USER = "user"
    APP = "app"


class PayloadMode(str, Enum):
    """Whether the request body must be verified against the credentials."""

    OFF = "off"
    OPTIONAL = "optional"
    REQUIRED = "required"


class Scheme(str, Enum):
    """Closed set of strategy schemes understood by the registry."""

    TICKET = "ticket"
    HMAC = "hmac"
    URI = "uri"
    STATIC = "static"
    COOKIE = "cookie"
    CUSTOM = "custom"


# Strategy name used when a route names no strategy.
DEFAULT_STRATEGY_NAME = "default"

# ASGI scope key carrying a trusted, pre-authenticated session.
INJECTED_SESSION_KEY = "authdispatch.session"

# Attribute of ``request.state`` holding the RequestAuthState.
AUTH_STATE_ATTR = "auth"

# Session artifact recorded by strategies that signed the request payload.
PAYLOAD_HASH_ARTIFACT = "hash"

ROUTE_OPTION_KEYS = frozenset({"mode", "entity", "payload", "strategy", "strategies", "scope", "tos"})
