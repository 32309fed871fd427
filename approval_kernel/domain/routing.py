"""
Approver routing (``approval_kernel.domain.routing``).

Responsibility
--------------
Decides, for a request kind and requester, which steps of the approval
sequence apply and who must act at a given pending step.

Architecture position
---------------------
**Kernel domain layer**.  Combines the ``RouteTable`` with a
``HierarchyResolver``; consumed by ``services.workflow_engine``.

Invariants enforced
-------------------
* ``Assignment.role`` always equals ``APPROVER_ROLE_BY_STATUS[status]``.
* A hierarchy-mode step with no holder in the chain is vacant and is
  skipped by ``route``; a queue-mode step falls back to the shared queue
  (``approver_id is None``).
"""

from __future__ import annotations

from dataclasses import dataclass

from approval_config.schema import RouteTable, StepMode
from approval_kernel.domain.hierarchy import HierarchyResolver
from approval_kernel.domain.transitions import approval_sequence
from approval_kernel.domain.workflow import (
    APPROVER_ROLE_BY_STATUS,
    RequestKind,
    Role,
    Status,
)
from approval_kernel.logging_config import get_logger

logger = get_logger("domain.routing")


@dataclass(frozen=True)
class Assignment:
    """Who must act at a pending step.  ``approver_id`` None means a shared queue."""

    approver_id: str | None
    role: Role

    @property
    def is_shared_queue(self) -> bool:
        return self.approver_id is None


class ApproverRouter:
    """Resolves approval sequences and step assignments."""

    def __init__(self, route_table: RouteTable, resolver: HierarchyResolver):
        self._route_table = route_table
        self._resolver = resolver

    def sequence_for(self, kind: RequestKind, requester_role: Role) -> tuple[Status, ...]:
        return approval_sequence(self._route_table.route_for(kind), requester_role)

    def initial_status(self, kind: RequestKind, requester_role: Role) -> Status:
        sequence = self.sequence_for(kind, requester_role)
        if sequence:
            return sequence[0]
        return self._route_table.route_for(kind).success_status

    def should_skip(self, kind: RequestKind, requester_role: Role, status: Status) -> bool:
        route = self._route_table.route_for(kind)
        return status in route.skipped_for(Role.coerce(requester_role))

    def next_approver(
        self,
        kind: RequestKind,
        status: Status,
        requester_id: str,
    ) -> Assignment | None:
        """
        Assignment for ``status``, or None when the status is not pending or
        its hierarchy-mode step is vacant.
        """
        role = APPROVER_ROLE_BY_STATUS.get(Status(status))
        if role is None:
            return None

        holder = self._resolver.nearest(requester_id, target_roles=(role,))
        if holder is not None:
            return Assignment(approver_id=holder.actor_id, role=role)

        step = self._route_table.route_for(kind).step(Status(status))
        if step is not None and step.mode == StepMode.HIERARCHY:
            return None
        return Assignment(approver_id=None, role=role)

    def route(
        self,
        kind: RequestKind,
        requester_id: str,
        requester_role: Role,
        target: Status,
    ) -> tuple[Status, Assignment | None]:
        """
        Land on ``target`` or, when it is a vacant step, the first non-vacant
        step after it.  Falls through to the success status when every
        remaining step is vacant.
        """
        target = Status(target)
        if target not in APPROVER_ROLE_BY_STATUS:
            return target, None

        sequence = self.sequence_for(kind, requester_role)
        if target not in sequence:
            # Off-sequence pending status: assign without skipping.
            return target, self.next_approver(kind, target, requester_id)

        for status in sequence[sequence.index(target):]:
            assignment = self.next_approver(kind, status, requester_id)
            if assignment is not None:
                return status, assignment
            logger.info(
                "approval_step_vacant",
                extra={"kind": RequestKind(kind).value, "skipped_status": status.value},
            )
        return self._route_table.route_for(kind).success_status, None
