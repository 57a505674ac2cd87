"""CLI entry point: python -m authdispatch."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from authdispatch.config import build_dispatcher, load_config
from authdispatch.errors import ConfigurationError, PolicyValidationError
from authdispatch.policy import RoutePolicy

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the authdispatch CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m authdispatch",
        description="Validate an authdispatch configuration and print the resolved route policies.",
    )

    parser.add_argument(
        "--config",
        required=True,
        type=Path,
        help="Path to the JSON configuration file.",
    )
    parser.add_argument(
        "--check",
        action="append",
        default=[],
        metavar="PATH",
        help="Request path to resolve against the route table (repeatable).",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging level (default: WARNING).",
    )

    return parser


def _describe(policy: Any) -> dict[str, Any] | bool:
    return policy.to_dict() if isinstance(policy, RoutePolicy) else False


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Exit codes:
        0 - Configuration is valid
        1 - Missing or unreadable configuration file
        2 - Invalid strategy or route configuration
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path: Path = args.config
    if not config_path.is_file():
        print(f"Error: --config '{config_path}' does not exist.", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as exc:
        print(f"Error: cannot read '{config_path}': {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        dispatcher = build_dispatcher(config)
    except (ConfigurationError, PolicyValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    report: dict[str, Any] = {
        "strategies": dispatcher.registry.names(),
        "default_required": dispatcher.registry.default_required,
        "routes": {path: _describe(policy) for path, policy in dispatcher.routes.items()},
    }
    if args.check:
        resolved = {}
        for path in args.check:
            policy = dispatcher.routes.lookup(path)
            resolved[path] = _describe(policy if policy is not None else dispatcher.routes.default_policy())
        report["checks"] = resolved

    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
