"""authdispatch: ordered multi-strategy authentication for Starlette applications."""

from __future__ import annotations

from authdispatch.adapters.errors import ErrorMapper
from authdispatch.config import build_dispatcher, load_config
from authdispatch.constants import (
    AUTH_STATE_ATTR,
    DEFAULT_STRATEGY_NAME,
    INJECTED_SESSION_KEY,
    Entity,
    Mode,
    PayloadMode,
    Scheme,
)
from authdispatch.dispatcher import AuthDispatcher
from authdispatch.engine import (
    Authenticated,
    AuthenticationEngine,
    Rejected,
    Trying,
    Unauthenticated,
    transition,
)
from authdispatch.enforcer import PolicyEnforcer
from authdispatch.errors import (
    AuthChallenge,
    AuthError,
    AuthFailure,
    ConfigurationError,
    PolicyValidationError,
    PolicyViolation,
    ProtocolViolation,
    Unauthorized,
)
from authdispatch.hooks import PayloadAuthenticator, ResponseSigner
from authdispatch.middleware import AuthMiddleware
from authdispatch.policy import DISABLED, RoutePolicy, RouteTable, setup_route
from authdispatch.session import RequestAuthState, Session
from authdispatch.strategies import Capabilities, OutgoingResponse, Strategy, StrategyRegistry

__all__ = [
    # Public API
    "AuthDispatcher",
    "AuthMiddleware",
    "build_dispatcher",
    "load_config",
    # Pipeline building blocks
    "StrategyRegistry",
    "RouteTable",
    "RoutePolicy",
    "DISABLED",
    "setup_route",
    "AuthenticationEngine",
    "transition",
    "Trying",
    "Authenticated",
    "Unauthenticated",
    "Rejected",
    "PolicyEnforcer",
    "PayloadAuthenticator",
    "ResponseSigner",
    "ErrorMapper",
    # Types
    "Strategy",
    "Capabilities",
    "OutgoingResponse",
    "Session",
    "RequestAuthState",
    # Errors
    "AuthError",
    "AuthChallenge",
    "AuthFailure",
    "Unauthorized",
    "PolicyViolation",
    "ProtocolViolation",
    "ConfigurationError",
    "PolicyValidationError",
    # Constants
    "Mode",
    "Entity",
    "PayloadMode",
    "Scheme",
    "DEFAULT_STRATEGY_NAME",
    "INJECTED_SESSION_KEY",
    "AUTH_STATE_ATTR",
]

__version__ = "0.1.0"
