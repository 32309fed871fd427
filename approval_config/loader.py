"""
Configuration Loader (``approval_config.loader``).

Responsibility
--------------
Loads the YAML files of a configuration set and parses them into the
frozen dataclasses of ``approval_config.schema``.  The single public
entry point for runtime config is ``approval_config.get_route_table()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown status, action, role or step mode  -> ``ValueError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from approval_config.schema import (
    ExtensionTransition,
    RouteDefinition,
    RouteTable,
    StepDefinition,
    StepMode,
)
from approval_kernel.domain.workflow import Action, RequestKind, Role, Status


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _statuses(values: list[str] | None) -> frozenset[Status]:
    return frozenset(Status(v) for v in values or ())


def parse_step(data: dict[str, Any] | str) -> StepDefinition:
    """Parse a step given either as a bare status or a mapping."""
    if isinstance(data, str):
        return StepDefinition(status=Status(data))
    return StepDefinition(
        status=Status(data["status"]),
        mode=StepMode(data.get("mode", StepMode.QUEUE.value)),
    )


def parse_extension(data: dict[str, Any]) -> ExtensionTransition:
    return ExtensionTransition(
        from_status=Status(data["from"]),
        action=Action(data["action"]),
        to_status=Status(data["to"]),
    )


def parse_route(data: dict[str, Any]) -> RouteDefinition:
    """
    Parse a ``RouteDefinition`` from a fragment dict.

    Raises:
        KeyError: if ``kind``, ``steps`` or ``success_status`` is missing.
        ValueError: on an unknown enum value.
    """
    skip_steps = {
        Role(role): _statuses(statuses)
        for role, statuses in (data.get("skip_steps") or {}).items()
    }
    kwargs: dict[str, Any] = {}
    if "editable_statuses" in data:
        kwargs["editable_statuses"] = _statuses(data["editable_statuses"])
    return RouteDefinition(
        kind=RequestKind(data["kind"]),
        steps=tuple(parse_step(s) for s in data["steps"]),
        success_status=Status(data["success_status"]),
        skip_steps=skip_steps,
        hold_statuses=_statuses(data.get("hold_statuses")),
        cancellable_statuses=_statuses(data.get("cancellable_statuses")),
        extensions=tuple(parse_extension(e) for e in data.get("extensions") or ()),
        admin_override=bool(data.get("admin_override", False)),
        **kwargs,
    )


def compute_checksum(documents: list[dict[str, Any]]) -> str:
    """Deterministic SHA-256 over the raw YAML documents of a set."""
    canonical = json.dumps(documents, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_route_table(set_dir: Path) -> RouteTable:
    """
    Load ``root.yaml`` and every fragment it lists from ``set_dir``.

    ``root.yaml`` layout::

        config_id: default
        version: 1
        routes:
          - manpower.yaml
          - business_trip.yaml
    """
    root = load_yaml_file(set_dir / "root.yaml")
    documents: list[dict[str, Any]] = [root]
    routes: dict[RequestKind, RouteDefinition] = {}
    for fragment_name in root.get("routes") or ():
        fragment = load_yaml_file(set_dir / fragment_name)
        documents.append(fragment)
        route = parse_route(fragment)
        if route.kind in routes:
            raise ValueError(
                f"Duplicate route for kind {route.kind.value!r} in {fragment_name}"
            )
        routes[route.kind] = route
    return RouteTable(
        config_id=root["config_id"],
        version=int(root.get("version", 1)),
        routes=routes,
        checksum=compute_checksum(documents),
    )
