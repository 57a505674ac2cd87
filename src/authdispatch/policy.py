"""Per-route authentication policy: validation, normalization and resolution."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final, Union

from starlette.requests import HTTPConnection
from starlette.routing import compile_path

from authdispatch.constants import DEFAULT_STRATEGY_NAME, ROUTE_OPTION_KEYS, Entity, Mode, PayloadMode
from authdispatch.errors import PolicyValidationError
from authdispatch.strategies.registry import StrategyRegistry

logger = logging.getLogger(__name__)


class _Disabled:
    """Sentinel for routes with authentication turned off."""

    _instance: _Disabled | None = None

    def __new__(cls) -> _Disabled:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "DISABLED"


DISABLED: Final = _Disabled()


@dataclass(frozen=True)
class RoutePolicy:
    """Normalized authentication settings of a route.

    ``tos`` is None when the route has no terms-of-service requirement; any
    integer (including 0) means the session must carry an accepted TOS
    version at least that high.
    """

    strategies: tuple[str, ...]
    mode: Mode = Mode.REQUIRED
    entity: Entity = Entity.ANY
    payload: PayloadMode = PayloadMode.OFF
    scope: str | None = None
    tos: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategies": list(self.strategies),
            "mode": self.mode.value,
            "entity": self.entity.value,
            "payload": self.payload.value,
            "scope": self.scope,
            "tos": self.tos,
        }


ResolvedPolicy = Union[RoutePolicy, _Disabled]


def _enum_option(options: Mapping[str, Any], key: str, enum: type, default: Any, label: str) -> Any:
    value = options.get(key)
    if value is None:
        return default
    if value is False and enum is PayloadMode:
        return PayloadMode.OFF
    try:
        return enum(value)
    except ValueError:
        raise PolicyValidationError(f"Unknown authentication {label}: {value}") from None


def setup_route(raw: Any, registry: StrategyRegistry) -> ResolvedPolicy:
    """Validate and normalize a route's raw authentication settings.

    Args:
        raw: ``False``/``None`` (disabled), a strategy name, or a mapping with
            ``mode``, ``entity``, ``payload``, ``strategy`` or ``strategies``,
            ``scope`` and ``tos``.
        registry: Registry the strategy names must exist in.

    Returns:
        A ``RoutePolicy``, or ``DISABLED``.

    Raises:
        PolicyValidationError: If the settings are invalid.
    """
    if raw is None or raw is False:
        return DISABLED
    if isinstance(raw, str):
        raw = {"strategy": raw}
    if not isinstance(raw, Mapping):
        raise PolicyValidationError(f"Invalid route authentication settings: {raw!r}")

    unknown = set(raw) - ROUTE_OPTION_KEYS
    if unknown:
        raise PolicyValidationError(f"Unknown authentication settings: {sorted(unknown)}")

    mode = _enum_option(raw, "mode", Mode, Mode.REQUIRED, "mode")
    entity = _enum_option(raw, "entity", Entity, Entity.ANY, "entity type")
    payload = _enum_option(raw, "payload", PayloadMode, PayloadMode.OFF, "payload mode")

    if raw.get("strategy") is not None and raw.get("strategies") is not None:
        raise PolicyValidationError(
            "Route can only have a auth.strategy or auth.strategies (or use the default) but not both"
        )
    strategies = raw.get("strategies")
    if strategies is not None:
        if isinstance(strategies, str) or not strategies:
            raise PolicyValidationError("Cannot have empty auth.strategies array")
        strategies = tuple(strategies)
    else:
        strategies = (raw.get("strategy") or DEFAULT_STRATEGY_NAME,)

    has_payload_support = False
    for name in strategies:
        if name not in registry:
            raise PolicyValidationError(f"Unknown authentication strategy: {name}")
        has_payload_support = has_payload_support or registry.capabilities(name).authenticate_payload
    if payload is PayloadMode.REQUIRED and not has_payload_support:
        raise PolicyValidationError(
            "Payload validation can only be required when at least one strategy supports it"
        )

    scope = raw.get("scope")
    if scope is not None and not isinstance(scope, str):
        raise PolicyValidationError(f"Invalid authentication scope: {scope!r}")

    tos = _normalize_tos(raw)
    return RoutePolicy(
        strategies=strategies,
        mode=mode,
        entity=entity,
        payload=payload,
        scope=scope or None,
        tos=tos,
    )


def _normalize_tos(raw: Mapping[str, Any]) -> int | None:
    if "tos" not in raw:
        return None
    tos = raw["tos"]
    if tos is None:
        return 0
    if isinstance(tos, bool) or not isinstance(tos, int):
        raise PolicyValidationError(f"Invalid authentication tos: {tos!r}")
    return tos


class RouteTable:
    """Maps Starlette path templates to route policies."""

    def __init__(self, registry: StrategyRegistry) -> None:
        self._registry = registry
        self._routes: list[tuple[str, re.Pattern[str], ResolvedPolicy]] = []

    def add(self, path: str, raw: Any) -> ResolvedPolicy:
        """Validate ``raw`` and attach it to ``path`` (e.g. ``/items/{item_id}``)."""
        policy = setup_route(raw, self._registry)
        path_regex, _, _ = compile_path(path)
        self._routes.append((path, path_regex, policy))
        logger.debug("Route auth configured: %s -> %r", path, policy)
        return policy

    def lookup(self, path: str) -> ResolvedPolicy | None:
        """Return the policy of the first route matching ``path``, or None."""
        for _, path_regex, policy in self._routes:
            if path_regex.match(path):
                return policy
        return None

    def resolve(self, request: HTTPConnection) -> ResolvedPolicy:
        """Return the request's route policy, or the default-required fallback."""
        policy = self.lookup(request.scope.get("path", ""))
        if policy is not None:
            return policy
        return self.default_policy()

    def default_policy(self) -> ResolvedPolicy:
        default = self._registry.default_required
        if default is None:
            return DISABLED
        return RoutePolicy(strategies=(default,), mode=Mode.REQUIRED)

    def items(self) -> list[tuple[str, ResolvedPolicy]]:
        return [(path, policy) for path, _, policy in self._routes]
