"""
WorkflowEngine -- the single entry point that mutates workflow requests.

Responsibility:
    Orchestrates one transition end to end: load, authorize, compute the
    next status, route the next approver, persist with a version CAS,
    append the approval log and archive a snapshot on send-back.  Also
    creates and edits requests and serves their history.

Architecture position:
    Kernel > Services.  Composes domain/ (state machine, router,
    hierarchy) with the flush-only services below it.  Owns the
    transaction boundary through ``session_scope``; every public method
    is one database transaction.

Invariants enforced:
    - Status changes only through ``TransitionStateMachine.next_status``.
    - Every committed transition writes exactly one approval log entry.
    - Every send-back to DRAFT archives exactly one snapshot, numbered
      with the revision counter before it was incremented.
    - A stale version never commits (``ConcurrencyGuard``).
    - Every check runs before the first write; any failure rolls back
      the whole transaction.

Failure modes:
    - RequestNotFoundError / ActorNotFoundError
    - InvalidTransitionError
    - OptimisticLockError
    - ForbiddenError
    - PayloadValidationError
    - PersistenceError -- any SQLAlchemy failure, after rollback.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from approval_config import get_route_table
from approval_config.schema import RouteTable
from approval_kernel.db.engine import session_scope
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.dtos import (
    ApprovalLogEntry,
    RequestVersionSnapshot,
    TransitionResult,
    WorkflowRequest,
)
from approval_kernel.domain.hierarchy import (
    DEFAULT_MAX_DEPTH,
    ActorInfo,
    DirectoryPort,
    HierarchyResolver,
)
from approval_kernel.domain.payloads import validate_payload
from approval_kernel.domain.routing import ApproverRouter, Assignment
from approval_kernel.domain.transitions import TransitionStateMachine
from approval_kernel.domain.workflow import (
    Action,
    RequestKind,
    Role,
    Status,
    step_name_for,
)
from approval_kernel.exceptions import (
    ActorNotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    OptimisticLockError,
    PayloadValidationError,
    PersistenceError,
    RequestNotFoundError,
)
from approval_kernel.logging_config import LogContext, get_logger
from approval_kernel.models.request import WorkflowRequestModel
from approval_kernel.selectors.request_selector import RequestSelector
from approval_kernel.services.audit_trail import AuditTrail
from approval_kernel.services.concurrency_guard import ConcurrencyGuard
from approval_kernel.services.version_archiver import (
    VersionArchiver,
    build_snapshot,
    is_send_back,
)

logger = get_logger("services.workflow_engine")


class WorkflowEngine:
    """Approval workflow over manpower requests and business trips."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        directory: DirectoryPort,
        clock: Clock | None = None,
        route_table: RouteTable | None = None,
        max_hierarchy_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._session_factory = session_factory
        self._directory = directory
        self._clock = clock or SystemClock()
        self._route_table = route_table or get_route_table()
        self._resolver = HierarchyResolver(directory, max_depth=max_hierarchy_depth)
        self._router = ApproverRouter(self._route_table, self._resolver)
        self._machine = TransitionStateMachine(self._route_table)

    @property
    def router(self) -> ApproverRouter:
        return self._router

    @property
    def state_machine(self) -> TransitionStateMachine:
        return self._machine

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self, operation: str) -> Generator[Session, None, None]:
        """``session_scope`` that surfaces database failures as PersistenceError."""
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error(
                "workflow_persistence_failed",
                extra={"operation": operation},
                exc_info=True,
            )
            raise PersistenceError(operation, str(exc)) from exc

    def _require_actor(self, actor_id: str) -> ActorInfo:
        actor = self._directory.get_actor(actor_id)
        if actor is None:
            raise ActorNotFoundError(actor_id)
        return actor

    @staticmethod
    def _require_request(session: Session, request_id: str) -> WorkflowRequestModel:
        request = session.get(WorkflowRequestModel, request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    @staticmethod
    def _coerce_action(action: Action | str, status: Status) -> Action:
        try:
            return Action(action)
        except ValueError:
            raise InvalidTransitionError(status=status.value, action=str(action)) from None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        request_id: str,
        actor_id: str,
        action: Action | str,
        comment: str | None = None,
        ip_address: str | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """
        Apply ``action`` by ``actor_id`` to a request.

        ``expected_version`` is the version the caller last saw; when
        omitted, the version read at the start of this call is used.
        """
        with LogContext.bind(
            request_id=request_id,
            actor_id=actor_id,
            action=getattr(action, "value", action),
        ):
            with self._unit_of_work("transition") as session:
                request = self._require_request(session, request_id)
                actor = self._require_actor(actor_id)

                previous = Status(request.status)
                action = self._coerce_action(action, previous)
                kind = RequestKind(request.kind)
                requester_role = Role.coerce(request.requester_role)
                target = self._machine.next_status(kind, requester_role, previous, action)

                observed = request.version if expected_version is None else expected_version
                guard = ConcurrencyGuard(session)
                request = guard.check_and_lock(request_id, observed)
                guard.authorize(
                    request,
                    actor,
                    action,
                    admin_override=self._route_table.route_for(kind).admin_override,
                )

                if action == Action.HOLD:
                    new_status = target
                    approver_id = request.current_approver_id
                    approver_role = request.current_approver_role
                else:
                    new_status, assignment = self._router.route(
                        kind, request.requester_id, requester_role, target
                    )
                    approver_id, approver_role = _assignment_columns(assignment)

                send_back = is_send_back(previous, new_status)
                snapshot = build_snapshot(request) if send_back else None
                archived_revision = request.revision_version

                values: dict[str, Any] = {
                    "status": new_status.value,
                    "current_approver_id": approver_id,
                    "current_approver_role": approver_role,
                    "updated_at": self._clock.now(),
                }
                if send_back:
                    values["revision_version"] = archived_revision + 1
                new_version = guard.compare_and_swap(request_id, observed, values)

                AuditTrail(session, self._clock).record(
                    request_id=request_id,
                    actor_id=actor_id,
                    action=action,
                    step_name=step_name_for(action, previous),
                    comment=comment,
                    ip_address=ip_address,
                )
                if send_back:
                    VersionArchiver(session, self._clock).archive(
                        request_id, archived_revision, snapshot
                    )

            logger.info(
                "workflow_transition_committed",
                extra={
                    "previous_status": previous.value,
                    "new_status": new_status.value,
                    "version": new_version,
                    "current_approver_id": approver_id,
                    "current_approver_role": approver_role,
                },
            )
            return TransitionResult(
                request_id=request_id,
                previous_status=previous,
                new_status=new_status,
                version=new_version,
                current_approver_id=approver_id,
                current_approver_role=Role(approver_role) if approver_role else None,
            )

    def allowed_actions(self, request_id: str, actor_id: str) -> frozenset[Action]:
        """Actions ``actor_id`` could successfully apply right now."""
        actor = self._require_actor(actor_id)
        with self._unit_of_work("allowed_actions") as session:
            request = self._require_request(session, request_id)
            kind = RequestKind(request.kind)
            legal = self._machine.allowed_actions(
                kind, Role.coerce(request.requester_role), Status(request.status)
            )
            guard = ConcurrencyGuard(session)
            admin_override = self._route_table.route_for(kind).admin_override
            permitted = set()
            for action in legal:
                try:
                    guard.authorize(
                        request, actor, action, admin_override, log_override=False
                    )
                except ForbiddenError:
                    continue
                permitted.add(action)
            return frozenset(permitted)

    # ------------------------------------------------------------------
    # Creation and editing
    # ------------------------------------------------------------------

    def create(
        self,
        kind: RequestKind | str,
        payload: dict[str, Any],
        requester_id: str,
        submit: bool = True,
    ) -> WorkflowRequest:
        """
        Create a request at version 0.

        With ``submit`` the request starts at the requester's first approval
        step; otherwise it starts in DRAFT.  Creation writes no log entry.
        """
        try:
            kind = RequestKind(kind)
        except ValueError:
            raise PayloadValidationError("kind", f"unknown request kind {kind!r}") from None
        validate_payload(kind, payload)
        requester = self._require_actor(requester_id)
        requester_role = Role.coerce(requester.role)

        if submit:
            status, assignment = self._router.route(
                kind,
                requester_id,
                requester_role,
                self._router.initial_status(kind, requester_role),
            )
        else:
            status, assignment = Status.DRAFT, None
        approver_id, approver_role = _assignment_columns(assignment)

        now = self._clock.now()
        with self._unit_of_work("create") as session:
            request = WorkflowRequestModel(
                kind=kind.value,
                requester_id=requester_id,
                requester_role=requester_role.value,
                status=status.value,
                version=0,
                revision_version=0,
                current_approver_id=approver_id,
                current_approver_role=approver_role,
                payload=dict(payload),
                created_at=now,
                updated_at=now,
            )
            session.add(request)
            session.flush()
            dto = request.to_dto()

        logger.info(
            "workflow_request_created",
            extra={
                "request_id": dto.id,
                "kind": kind.value,
                "requester_id": requester_id,
                "status": status.value,
                "current_approver_id": approver_id,
            },
        )
        return dto

    def update(
        self,
        request_id: str,
        data: dict[str, Any],
        expected_version: int,
        user_id: str,
    ) -> WorkflowRequest:
        """
        Merge ``data`` into the payload of an editable request.

        Check order: existence, version, ownership and editability, payload.
        """
        if not isinstance(data, dict):
            raise PayloadValidationError("payload", "must be a JSON object")

        with LogContext.bind(request_id=request_id, actor_id=user_id):
            with self._unit_of_work("update") as session:
                request = self._require_request(session, request_id)
                if request.version != expected_version:
                    raise OptimisticLockError(request_id, expected_version, request.version)
                if request.requester_id != user_id:
                    raise ForbiddenError(user_id, "UPDATE", "only the requester may edit")

                kind = RequestKind(request.kind)
                editable = self._route_table.route_for(kind).editable_statuses
                if Status(request.status) not in editable:
                    raise ForbiddenError(
                        user_id, "UPDATE", f"request is not editable in {request.status}"
                    )

                merged = {**(request.payload or {}), **data}
                validate_payload(kind, merged)

                new_version = ConcurrencyGuard(session).compare_and_swap(
                    request_id,
                    expected_version,
                    {"payload": merged, "updated_at": self._clock.now()},
                )
                session.refresh(request)
                dto = request.to_dto()

            logger.info(
                "workflow_request_updated",
                extra={"version": new_version, "fields": sorted(data)},
            )
            return dto

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_request(self, request_id: str) -> WorkflowRequest:
        with self._unit_of_work("get_request") as session:
            return self._require_request(session, request_id).to_dto()

    def get_request_history(self, request_id: str) -> list[ApprovalLogEntry]:
        """Approval log of a request in chronological order."""
        with self._unit_of_work("get_request_history") as session:
            self._require_request(session, request_id)
            return AuditTrail(session, self._clock).history(request_id)

    def get_request_versions(self, request_id: str) -> list[RequestVersionSnapshot]:
        """Archived snapshots, newest revision first."""
        with self._unit_of_work("get_request_versions") as session:
            self._require_request(session, request_id)
            return VersionArchiver(session, self._clock).versions(request_id)

    def pending_approvals(self, actor_id: str) -> list[WorkflowRequest]:
        """Requests waiting on ``actor_id``, directly or through a role queue."""
        actor = self._require_actor(actor_id)
        with self._unit_of_work("pending_approvals") as session:
            return RequestSelector(session).pending_for(actor)

    def list_requests(
        self,
        requester_id: str,
        status: Status | None = None,
    ) -> list[WorkflowRequest]:
        with self._unit_of_work("list_requests") as session:
            return RequestSelector(session).by_requester(requester_id, status)


def _assignment_columns(assignment: Assignment | None) -> tuple[str | None, str | None]:
    if assignment is None:
        return None, None
    return assignment.approver_id, assignment.role.value
