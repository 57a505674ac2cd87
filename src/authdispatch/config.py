"""Build an AuthDispatcher from a JSON configuration document.

Document layout::

    {
        "strategies": {
            "tickets": {"scheme": "ticket", "key": {"env": "TICKET_KEY"}, "required_by_default": true},
            "signed": {"scheme": "hmac", "verify": "myapp.auth:verify_hawk"},
            "partner": {"implementation": "myapp.auth:PartnerStrategy"}
        },
        "routes": {
            "/health": false,
            "/admin/{path:path}": {"strategies": ["tickets"], "scope": "admin", "entity": "user"}
        }
    }

String values of the callable options below are ``module:attribute`` import
strings; ``{"env": "NAME"}`` values are read from the environment.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from authdispatch._utils import resolve_import_string
from authdispatch.dispatcher import AuthDispatcher
from authdispatch.errors import ConfigurationError
from authdispatch.strategies.registry import looks_like_strategy_options

logger = logging.getLogger(__name__)

CALLABLE_OPTIONS = frozenset({"implementation", "validate", "verify", "verify_payload", "sign"})


def load_config(path: str | Path) -> dict[str, Any]:
    """Read a configuration document. Raises OSError or ValueError on bad input."""
    text = Path(path).read_text(encoding="utf-8")
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be an object, got {type(data).__name__}")
    return data


def _resolve_value(key: str, value: Any) -> Any:
    if isinstance(value, Mapping) and set(value) == {"env"}:
        name = value["env"]
        if name not in os.environ:
            raise ConfigurationError(f"Environment variable {name} is not set (needed for '{key}')")
        return os.environ[name]
    if key in CALLABLE_OPTIONS and isinstance(value, str):
        try:
            target = resolve_import_string(value)
        except (ImportError, AttributeError, ValueError) as exc:
            raise ConfigurationError(f"Cannot resolve {key} {value!r}: {exc}") from exc
        # Classes given as implementations are instantiated without arguments.
        return target() if key == "implementation" and isinstance(target, type) else target
    return value


def resolve_strategy_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Resolve import strings and environment references in one strategy's options."""
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"Invalid strategy options: {options!r}")
    return {key: _resolve_value(key, value) for key, value in options.items()}


def build_dispatcher(config: Mapping[str, Any], *, log_level: str | None = None) -> AuthDispatcher:
    """Create a dispatcher with the strategies and routes described by ``config``.

    Raises:
        ConfigurationError: On invalid strategies.
        PolicyValidationError: On invalid route settings.
    """
    unknown = set(config) - {"strategies", "routes"}
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")

    dispatcher = AuthDispatcher(log_level=log_level)

    strategies = config.get("strategies") or {}
    if not isinstance(strategies, Mapping):
        raise ConfigurationError("'strategies' must be an object")
    if looks_like_strategy_options(strategies):
        dispatcher.add_strategies(resolve_strategy_options(strategies))
    else:
        dispatcher.add_strategies({name: resolve_strategy_options(opts) for name, opts in strategies.items()})

    routes = config.get("routes") or {}
    if not isinstance(routes, Mapping):
        raise ConfigurationError("'routes' must be an object")
    for path, auth in routes.items():
        dispatcher.route(path, auth)

    logger.info("Loaded %d strategies and %d routes from configuration", len(dispatcher.registry), len(routes))
    return dispatcher
