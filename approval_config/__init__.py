"""
Approval Configuration (``approval_config``).

Routing rules for every request kind live in YAML configuration sets
under ``approval_config/sets/<config_id>/``.  Each set has a
``root.yaml`` naming the set and listing one fragment per request kind.

Usage::

    from approval_config import get_route_table

    table = get_route_table()
    route = table.route_for(RequestKind.MANPOWER)
"""

from __future__ import annotations

import logging
from pathlib import Path

from approval_config.loader import load_route_table
from approval_config.schema import (
    ExtensionTransition,
    RouteDefinition,
    RouteTable,
    StepDefinition,
    StepMode,
)
from approval_config.validator import ConfigValidationResult, validate_route_table

__all__ = [
    "get_route_table",
    "ConfigValidationResult",
    "ExtensionTransition",
    "RouteDefinition",
    "RouteTable",
    "StepDefinition",
    "StepMode",
]

_logger = logging.getLogger("approval_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_ID = "default"


def get_route_table(
    config_id: str = _DEFAULT_CONFIG_ID,
    config_dir: Path | None = None,
) -> RouteTable:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``RouteTable`` has passed ``validate_route_table``.
        - An ``APPROVAL_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Args:
        config_id: Name of the configuration set directory.
        config_dir: Override path to the configuration sets directory.
            Defaults to approval_config/sets/.

    Raises:
        FileNotFoundError: If the set or one of its fragments is missing.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    table = load_route_table(Path(sets_dir) / config_id)

    validation = validate_route_table(table)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("approval_config_warning", extra={"detail": warning})

    _logger.info(
        "APPROVAL_CONFIG_TRACE",
        extra={
            "trace_type": "APPROVAL_CONFIG_TRACE",
            "config_id": table.config_id,
            "config_version": table.version,
            "checksum": table.checksum,
            "kinds": sorted(k.value for k in table.routes),
        },
    )
    return table
