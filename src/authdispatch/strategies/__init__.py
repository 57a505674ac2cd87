"""Authentication strategy implementations and registry."""

from authdispatch.strategies.cookie import CookieSessionHelper, CookieStrategy
from authdispatch.strategies.hmac_signed import HmacStrategy
from authdispatch.strategies.protocol import Capabilities, OutgoingResponse, Strategy
from authdispatch.strategies.registry import SCHEME_FACTORIES, RegisteredStrategy, StrategyRegistry
from authdispatch.strategies.static import StaticCredentialStrategy
from authdispatch.strategies.ticket import TicketClaims, TicketStrategy
from authdispatch.strategies.uri import UriSignatureStrategy

__all__ = [
    "Strategy",
    "Capabilities",
    "OutgoingResponse",
    "StrategyRegistry",
    "RegisteredStrategy",
    "SCHEME_FACTORIES",
    "TicketStrategy",
    "TicketClaims",
    "HmacStrategy",
    "UriSignatureStrategy",
    "StaticCredentialStrategy",
    "CookieStrategy",
    "CookieSessionHelper",
]
