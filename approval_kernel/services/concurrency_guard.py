"""
ConcurrencyGuard -- optimistic locking and actor authorization.

Responsibility:
    Re-reads the persisted request, checks the caller's observed version,
    decides whether the actor may perform the action, and applies the
    final compare-and-swap UPDATE.

Architecture position:
    Kernel > Services.  Used only by ``WorkflowEngine``.

Invariants enforced:
    - A mutation commits only when the stored version equals the version
      the caller observed.  The CAS UPDATE is the linearization point:
      of two writers at version N, the database lets exactly one through.
    - Authorization is checked against the persisted row, never against a
      caller-supplied copy.

Failure modes:
    - RequestNotFoundError -- row vanished.
    - OptimisticLockError -- version mismatch at check time or CAS time.
    - ForbiddenError -- actor is not entitled to the action.
"""

from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from approval_kernel.domain.hierarchy import ActorInfo
from approval_kernel.domain.workflow import (
    APPROVER_ACTIONS,
    OWNER_ACTIONS,
    Action,
    Role,
)
from approval_kernel.exceptions import (
    ForbiddenError,
    OptimisticLockError,
    RequestNotFoundError,
)
from approval_kernel.logging_config import get_logger
from approval_kernel.models.request import WorkflowRequestModel

logger = get_logger("services.concurrency_guard")


class ConcurrencyGuard:
    """Version checks, authorization and CAS writes for workflow requests."""

    def __init__(self, session: Session):
        self._session = session

    def check_and_lock(
        self,
        request_id: str,
        expected_version: int,
    ) -> WorkflowRequestModel:
        """Re-read the request and fail if its version moved on."""
        request = self._session.execute(
            select(WorkflowRequestModel)
            .where(WorkflowRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(request_id)

        if request.version != expected_version:
            logger.warning(
                "optimistic_lock_conflict",
                extra={
                    "request_id": request_id,
                    "expected_version": expected_version,
                    "actual_version": request.version,
                    "stage": "check",
                },
            )
            raise OptimisticLockError(request_id, expected_version, request.version)
        return request

    def authorize(
        self,
        request: WorkflowRequestModel,
        actor: ActorInfo,
        action: Action,
        admin_override: bool = False,
        log_override: bool = True,
    ) -> None:
        """
        Raise ForbiddenError unless ``actor`` may perform ``action``.

        ``log_override`` False keeps read-only callers from recording
        ``admin_override_used``.

        Rules:
            - APPROVE / REJECT / HOLD: the designated approver; with no
              designated approver, any holder of the queue role.  Never the
              requester.
            - SUBMIT / CANCEL / ARCHIVE: the requester.
            - REQUEST_CHANGE: the designated approver or the requester.
            - With ``admin_override``, ADMIN passes everything but SUBMIT.
        """
        action = Action(action)
        role = Role.coerce(actor.role)
        is_requester = actor.id == request.requester_id

        if admin_override and role == Role.ADMIN and action != Action.SUBMIT:
            if log_override:
                logger.info(
                    "admin_override_used",
                    extra={"request_id": request.id, "admin_id": actor.id},
                )
            return

        if action in OWNER_ACTIONS:
            if is_requester:
                return
            raise ForbiddenError(actor.id, action.value, "only the requester may do this")

        is_approver = self.is_current_approver(request, actor)

        if action in APPROVER_ACTIONS:
            if is_requester:
                raise ForbiddenError(
                    actor.id, action.value, "requesters cannot review their own request"
                )
            if is_approver:
                return
            raise ForbiddenError(actor.id, action.value, "not the current approver")

        if action == Action.REQUEST_CHANGE and (is_approver or is_requester):
            return

        raise ForbiddenError(actor.id, action.value, "not the current approver or requester")

    @staticmethod
    def is_current_approver(request: Any, actor: ActorInfo) -> bool:
        if request.current_approver_id is not None:
            return request.current_approver_id == actor.id
        if request.current_approver_role is None:
            return False
        return Role.coerce(actor.role).value == request.current_approver_role

    def compare_and_swap(
        self,
        request_id: str,
        expected_version: int,
        values: dict[str, Any],
    ) -> int:
        """
        ``UPDATE ... WHERE id = :id AND version = :expected``, bumping version.

        Loaded instances are not synchronized; refresh them before reading.

        Returns:
            The new version.

        Raises:
            OptimisticLockError: if no row matched.
        """
        new_version = expected_version + 1
        result = self._session.execute(
            update(WorkflowRequestModel)
            .where(
                WorkflowRequestModel.id == request_id,
                WorkflowRequestModel.version == expected_version,
            )
            .values(**values, version=new_version)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            actual = self._session.execute(
                select(WorkflowRequestModel.version).where(
                    WorkflowRequestModel.id == request_id
                )
            ).scalar_one_or_none()
            logger.warning(
                "optimistic_lock_conflict",
                extra={
                    "request_id": request_id,
                    "expected_version": expected_version,
                    "actual_version": actual,
                    "stage": "swap",
                },
            )
            raise OptimisticLockError(request_id, expected_version, actual)
        return new_version
