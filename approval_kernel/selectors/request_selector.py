"""
Module: approval_kernel.selectors.request_selector
Responsibility: Read queries over workflow requests: requester listings
    and approver inboxes.
"""

from sqlalchemy import and_, or_, select

from approval_kernel.domain.dtos import WorkflowRequest
from approval_kernel.domain.hierarchy import ActorInfo
from approval_kernel.domain.workflow import PENDING_STATUSES, Role, Status
from approval_kernel.models.request import WorkflowRequestModel
from approval_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector[WorkflowRequestModel]):
    """Read-only access to workflow requests."""

    def by_requester(
        self,
        requester_id: str,
        status: Status | None = None,
    ) -> list[WorkflowRequest]:
        stmt = select(WorkflowRequestModel).where(
            WorkflowRequestModel.requester_id == requester_id
        )
        if status is not None:
            stmt = stmt.where(WorkflowRequestModel.status == Status(status).value)
        rows = self.session.execute(
            stmt.order_by(WorkflowRequestModel.created_at, WorkflowRequestModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def pending_for(self, actor: ActorInfo) -> list[WorkflowRequest]:
        """
        Requests waiting on ``actor``: designated to them, or sitting in the
        shared queue of their role.  Their own requests are excluded.
        """
        role = Role.coerce(actor.role)
        pending = [s.value for s in PENDING_STATUSES]
        rows = self.session.execute(
            select(WorkflowRequestModel)
            .where(
                WorkflowRequestModel.status.in_(pending),
                WorkflowRequestModel.requester_id != actor.id,
                or_(
                    WorkflowRequestModel.current_approver_id == actor.id,
                    and_(
                        WorkflowRequestModel.current_approver_id.is_(None),
                        WorkflowRequestModel.current_approver_role == role.value,
                    ),
                ),
            )
            .order_by(WorkflowRequestModel.created_at, WorkflowRequestModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]
