"""StrategyRegistry: named strategies and their registration-time capabilities."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from authdispatch.constants import DEFAULT_STRATEGY_NAME, Scheme
from authdispatch.errors import ConfigurationError
from authdispatch.strategies.cookie import CookieStrategy
from authdispatch.strategies.hmac_signed import HmacStrategy
from authdispatch.strategies.protocol import Capabilities
from authdispatch.strategies.static import StaticCredentialStrategy
from authdispatch.strategies.ticket import TicketStrategy
from authdispatch.strategies.uri import UriSignatureStrategy

logger = logging.getLogger(__name__)

SCHEME_FACTORIES: Mapping[Scheme, Callable[..., Any]] = {
    Scheme.TICKET: TicketStrategy,
    Scheme.HMAC: HmacStrategy,
    Scheme.URI: UriSignatureStrategy,
    Scheme.STATIC: StaticCredentialStrategy,
    Scheme.COOKIE: CookieStrategy,
}

# Options consumed by the registry itself; everything else goes to the scheme.
_REGISTRY_OPTIONS = frozenset({"scheme", "implementation", "required_by_default"})


@dataclass(frozen=True)
class RegisteredStrategy:
    name: str
    scheme: Scheme
    strategy: Any
    capabilities: Capabilities


def looks_like_strategy_options(options: Any) -> bool:
    return isinstance(options, Mapping) and ("scheme" in options or "implementation" in options)


class StrategyRegistry:
    """Registry of named authentication strategies.

    Built once before traffic starts; ``freeze()`` makes it read-only so
    concurrent requests can read it without locking.
    """

    def __init__(self) -> None:
        self._strategies: dict[str, RegisteredStrategy] = {}
        self._extensions: list[RegisteredStrategy] = []
        self._required_by_default: str | None = None
        self._frozen = False

    def add(self, name: str, options: Mapping[str, Any]) -> RegisteredStrategy:
        """Register a strategy.

        Args:
            name: Unique strategy name.
            options: ``{"scheme": <tag>, ...scheme options}`` for a built-in
                scheme, or ``{"implementation": obj}`` for a custom strategy.
                ``required_by_default`` makes this the strategy used by routes
                that declare no authentication settings.

        Raises:
            ConfigurationError: On any invalid registration.
        """
        if self._frozen:
            raise ConfigurationError(f"Cannot add strategy '{name}': registry is frozen")
        if not name or not isinstance(name, str):
            raise ConfigurationError("Authentication strategy must have a name")
        if name in self._strategies:
            raise ConfigurationError(f"Authentication strategy name already exists: {name}")
        if not isinstance(options, Mapping):
            raise ConfigurationError(f"Invalid strategy options for {name}")

        required_by_default = bool(options.get("required_by_default", False))
        if required_by_default and self._required_by_default is not None:
            raise ConfigurationError(
                f"Cannot set default required strategy more than once: {name} "
                f"(already set to: {self._required_by_default})"
            )

        scheme, strategy = self._build(name, options)
        entry = RegisteredStrategy(name=name, scheme=scheme, strategy=strategy, capabilities=Capabilities.of(strategy))
        self._strategies[name] = entry
        if entry.capabilities.extend_request:
            self._extensions.append(entry)
        if required_by_default:
            self._required_by_default = name

        logger.info("Registered auth strategy: %s (scheme=%s)", name, scheme.value)
        return entry

    def add_batch(self, options: Mapping[str, Any]) -> None:
        """Register either a single ``"default"`` strategy or a name → options mapping."""
        if not isinstance(options, Mapping):
            raise ConfigurationError("Invalid auth options")
        if not options:
            return

        top_level = looks_like_strategy_options(options)
        nested = any(looks_like_strategy_options(value) for value in options.values())
        if top_level == nested:
            raise ConfigurationError(
                "Auth options must include either a top level strategy or object of strategies but not both"
            )

        settings = {DEFAULT_STRATEGY_NAME: options} if top_level else options
        for name, strategy_options in settings.items():
            self.add(name, strategy_options)

    def _build(self, name: str, options: Mapping[str, Any]) -> tuple[Scheme, Any]:
        raw_scheme = options.get("scheme")
        implementation = options.get("implementation")

        if implementation is not None:
            if raw_scheme not in (None, Scheme.CUSTOM, Scheme.CUSTOM.value):
                raise ConfigurationError(f"{name} cannot declare both a scheme and an implementation")
            if not callable(getattr(implementation, "authenticate", None)):
                raise ConfigurationError(f"{name} has invalid extension scheme implementation")
            return Scheme.CUSTOM, implementation

        if raw_scheme is None:
            raise ConfigurationError(f"{name} missing both scheme and extension implementation")
        try:
            scheme = Scheme(raw_scheme)
        except ValueError:
            raise ConfigurationError(f"{name} has an unknown scheme: {raw_scheme}") from None
        if scheme is Scheme.CUSTOM:
            raise ConfigurationError(f"{name} declares a custom scheme without an implementation")

        kwargs = {key: value for key, value in options.items() if key not in _REGISTRY_OPTIONS}
        try:
            return scheme, SCHEME_FACTORIES[scheme](**kwargs)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{name} has invalid {scheme.value} options: {exc}") from exc

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> RegisteredStrategy:
        try:
            return self._strategies[name]
        except KeyError:
            available = sorted(self._strategies)
            raise KeyError(f"Auth strategy '{name}' not registered. Available strategies: {available}") from None

    def capabilities(self, name: str) -> Capabilities:
        return self.get(name).capabilities

    def names(self) -> list[str]:
        return list(self._strategies)

    def __contains__(self, name: object) -> bool:
        return name in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)

    @property
    def extensions(self) -> tuple[RegisteredStrategy, ...]:
        """Strategies exposing ``extend_request``, in registration order."""
        return tuple(self._extensions)

    @property
    def default_required(self) -> str | None:
        return self._required_by_default
