"""
Configuration Schema (``approval_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the approval route of each request kind:
the canonical approval sequence, how each step finds its approver, which
steps a requester's rank skips, and the extra edges (hold, cancel,
archive, post-approval) layered on top of the sequence.

Architecture position
---------------------
**Config layer** -- pure data.  Populated by ``approval_config.loader``
and consumed by ``approval_kernel.domain.transitions`` and
``approval_kernel.domain.routing``.

Invariants enforced
-------------------
* All schema objects are frozen; a loaded ``RouteTable`` cannot change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from approval_kernel.domain.workflow import Action, RequestKind, Role, Status


class StepMode(str, Enum):
    """How a pending step locates its approver."""

    # A holder must exist in the requester's reporting chain; otherwise the
    # step is vacant and routing moves past it.
    HIERARCHY = "hierarchy"
    # Nearest holder in the chain, else the step goes to the shared role queue.
    QUEUE = "queue"


@dataclass(frozen=True)
class StepDefinition:
    status: Status
    mode: StepMode = StepMode.QUEUE


@dataclass(frozen=True)
class ExtensionTransition:
    """An edge outside the approval sequence, valid for every requester rank."""

    from_status: Status
    action: Action
    to_status: Status


@dataclass(frozen=True)
class RouteDefinition:
    """Complete routing rules for one request kind."""

    kind: RequestKind
    steps: tuple[StepDefinition, ...]
    success_status: Status
    skip_steps: dict[Role, frozenset[Status]] = field(default_factory=dict)
    hold_statuses: frozenset[Status] = frozenset()
    cancellable_statuses: frozenset[Status] = frozenset()
    editable_statuses: frozenset[Status] = frozenset({Status.DRAFT})
    extensions: tuple[ExtensionTransition, ...] = ()
    admin_override: bool = False

    @property
    def sequence(self) -> tuple[Status, ...]:
        return tuple(step.status for step in self.steps)

    def step(self, status: Status) -> StepDefinition | None:
        for candidate in self.steps:
            if candidate.status == status:
                return candidate
        return None

    def skipped_for(self, role: Role) -> frozenset[Status]:
        return self.skip_steps.get(role, frozenset())


@dataclass(frozen=True)
class RouteTable:
    """All route definitions of one configuration set."""

    config_id: str
    version: int
    routes: dict[RequestKind, RouteDefinition]
    checksum: str = ""

    def route_for(self, kind: RequestKind) -> RouteDefinition:
        try:
            return self.routes[RequestKind(kind)]
        except (KeyError, ValueError):
            raise KeyError(f"No route configured for request kind {kind!r}") from None
