"""
Configuration Validator (``approval_config.validator``).

Responsibility
--------------
Validates a ``RouteTable`` before the engine is allowed to use it.

Invariants enforced
-------------------
* Every request kind has a route.
* Steps are pending statuses, unique, and in canonical review order.
* Skips, holds and cancellable statuses name statuses the route can reach.
* The success status is not a pending status.
* An extension may not shadow a sequence edge.

Failure modes
-------------
* ``ConfigValidationResult.errors``  -> the table MUST NOT be used.
* ``ConfigValidationResult.warnings``  -> usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from approval_config.schema import RouteDefinition, RouteTable
from approval_kernel.domain.workflow import (
    PENDING_STATUSES,
    Action,
    RequestKind,
    Role,
    Status,
)

_CANONICAL_ORDER = (
    Status.PENDING_MANAGER,
    Status.PENDING_HR,
    Status.PENDING_FINANCE,
    Status.PENDING_CEO,
)

# Actions whose edges are generated from the sequence.
_SEQUENCE_ACTIONS = frozenset({
    Action.APPROVE,
    Action.REJECT,
    Action.REQUEST_CHANGE,
    Action.HOLD,
})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_route_table(table: RouteTable) -> ConfigValidationResult:
    """Validate every route of ``table`` and return the collected findings."""
    result = ConfigValidationResult()

    for kind in RequestKind:
        if kind not in table.routes:
            result.add_error(f"No route configured for request kind '{kind.value}'")

    for route in table.routes.values():
        _validate_route(route, result)

    return result


def _validate_route(route: RouteDefinition, result: ConfigValidationResult) -> None:
    prefix = f"route '{route.kind.value}'"
    sequence = route.sequence

    if not sequence:
        result.add_error(f"{prefix}: at least one step is required")

    for status in sequence:
        if status not in PENDING_STATUSES:
            result.add_error(f"{prefix}: step {status.value} is not a pending status")

    if len(set(sequence)) != len(sequence):
        result.add_error(f"{prefix}: duplicate steps in {[s.value for s in sequence]}")

    ordered = [s for s in _CANONICAL_ORDER if s in sequence]
    if list(sequence) != ordered:
        result.add_error(
            f"{prefix}: steps must follow review order "
            f"{[s.value for s in _CANONICAL_ORDER]}"
        )

    if route.success_status in PENDING_STATUSES or route.success_status == Status.DRAFT:
        result.add_error(
            f"{prefix}: success status {route.success_status.value} must be terminal"
        )

    for role, skipped in route.skip_steps.items():
        unknown = skipped - set(sequence)
        if unknown:
            result.add_error(
                f"{prefix}: role {role.value} skips steps not in the sequence: "
                f"{sorted(s.value for s in unknown)}"
            )
        if role == Role.ADMIN:
            result.add_warning(f"{prefix}: skip rules for ADMIN requesters are unusual")

    for status in route.hold_statuses:
        if status not in sequence:
            result.add_error(f"{prefix}: hold status {status.value} is not a step")

    for status in route.cancellable_statuses:
        if status != Status.DRAFT and status not in sequence:
            result.add_error(
                f"{prefix}: cancellable status {status.value} is not reachable"
            )

    for ext in route.extensions:
        if ext.from_status in sequence and ext.action in _SEQUENCE_ACTIONS:
            result.add_error(
                f"{prefix}: extension {ext.from_status.value} + {ext.action.value} "
                "shadows a sequence edge"
            )
        if ext.from_status == Status.DRAFT and ext.action == Action.SUBMIT:
            result.add_error(f"{prefix}: DRAFT + SUBMIT cannot be overridden")

    if not route.editable_statuses:
        result.add_warning(f"{prefix}: no editable statuses; update() will always refuse")
