"""
Transition state machine (``approval_kernel.domain.transitions``).

Responsibility
--------------
Derives the legal ``(Status, Action) -> Status`` table of a request from
its kind and the requester's rank, and answers "what status follows this
action" for the engine.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Reads a ``RouteTable`` but performs no
I/O.  Consumed by ``services.workflow_engine``.

Invariants enforced
-------------------
* A status changes only through an edge present in the table; any other
  pair raises ``InvalidTransitionError``.
* Terminal statuses have no outgoing edges beyond configured extensions.
* Tables are built once per (kind, rank) and are immutable afterwards.

Failure modes
-------------
* ``InvalidTransitionError`` -- pair absent from the table.
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from approval_kernel.domain.workflow import Action, RequestKind, Role, Status
from approval_kernel.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from approval_config.schema import RouteDefinition, RouteTable

TransitionTable = Mapping[tuple[Status, Action], Status]


def approval_sequence(route: RouteDefinition, requester_role: Role) -> tuple[Status, ...]:
    """The canonical sequence of ``route`` minus the steps ``requester_role`` skips."""
    skipped = route.skipped_for(Role.coerce(requester_role))
    return tuple(s for s in route.sequence if s not in skipped)


def build_transition_table(
    route: RouteDefinition,
    requester_role: Role,
) -> TransitionTable:
    """Build the immutable transition table for one kind and requester rank."""
    sequence = approval_sequence(route, requester_role)
    edges: dict[tuple[Status, Action], Status] = {}

    first = sequence[0] if sequence else route.success_status
    edges[(Status.DRAFT, Action.SUBMIT)] = first
    if Status.DRAFT in route.cancellable_statuses:
        edges[(Status.DRAFT, Action.CANCEL)] = Status.CANCELLED

    for index, step in enumerate(sequence):
        following = (
            sequence[index + 1] if index + 1 < len(sequence) else route.success_status
        )
        edges[(step, Action.APPROVE)] = following
        edges[(step, Action.REJECT)] = Status.REJECTED
        edges[(step, Action.REQUEST_CHANGE)] = Status.DRAFT
        if step in route.hold_statuses:
            edges[(step, Action.HOLD)] = step
        if step in route.cancellable_statuses:
            edges[(step, Action.CANCEL)] = Status.CANCELLED

    for ext in route.extensions:
        edges[(ext.from_status, ext.action)] = ext.to_status

    return MappingProxyType(edges)


class TransitionStateMachine:
    """
    Role-adjusted transition lookup over a ``RouteTable``.

    Contract:
        ``next_status`` is the single gate through which the engine learns
        the target of an action.  It never mutates anything.
    """

    def __init__(self, route_table: RouteTable):
        self._route_table = route_table
        self._tables: dict[tuple[RequestKind, Role], TransitionTable] = {}
        self._lock = threading.Lock()

    def table_for(self, kind: RequestKind, requester_role: Role) -> TransitionTable:
        key = (RequestKind(kind), Role.coerce(requester_role))
        table = self._tables.get(key)
        if table is None:
            with self._lock:
                table = self._tables.get(key)
                if table is None:
                    route = self._route_table.route_for(key[0])
                    table = build_transition_table(route, key[1])
                    self._tables[key] = table
        return table

    def next_status(
        self,
        kind: RequestKind,
        requester_role: Role,
        status: Status,
        action: Action,
    ) -> Status:
        """
        Resolve the status that ``action`` leads to from ``status``.

        Raises:
            InvalidTransitionError: if the pair is not in the table.
        """
        table = self.table_for(kind, requester_role)
        try:
            return table[(Status(status), Action(action))]
        except (KeyError, ValueError):
            raise InvalidTransitionError(
                status=str(getattr(status, "value", status)),
                action=str(getattr(action, "value", action)),
                kind=RequestKind(kind).value,
            ) from None

    def allowed_actions(
        self,
        kind: RequestKind,
        requester_role: Role,
        status: Status,
    ) -> frozenset[Action]:
        table = self.table_for(kind, requester_role)
        return frozenset(action for (src, action) in table if src == status)

    def is_terminal(
        self,
        kind: RequestKind,
        requester_role: Role,
        status: Status,
    ) -> bool:
        return not self.allowed_actions(kind, requester_role, status)
