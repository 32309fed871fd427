"""
Module: approval_kernel.models.request
Responsibility: ORM persistence for workflow requests of every kind.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - version starts at 0 and only moves through a compare-and-swap UPDATE
      issued by ConcurrencyGuard.
    - revision_version starts at 0 and grows only when a request is sent
      back to DRAFT.
    - kind, requester_id and requester_role never change after INSERT.
"""

from typing import Any

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import ID_LENGTH, TrackedBase
from approval_kernel.domain.dtos import WorkflowRequest
from approval_kernel.domain.workflow import RequestKind, Role, Status


class WorkflowRequestModel(TrackedBase):
    """A manpower request or business trip moving through approval."""

    __tablename__ = "workflow_requests"
    __table_args__ = (
        CheckConstraint("version >= 0", name="chk_request_version_nonnegative"),
        CheckConstraint(
            "revision_version >= 0", name="chk_request_revision_nonnegative"
        ),
        Index("idx_request_status", "status"),
        Index("idx_request_requester", "requester_id"),
        Index("idx_request_approver", "current_approver_id"),
        Index("idx_request_queue", "current_approver_role", "status"),
    )

    kind: Mapped[str] = mapped_column(String(32), nullable=False)

    requester_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)

    # Rank at creation; later promotions do not reroute an in-flight request.
    requester_role: Mapped[str] = mapped_column(String(32), nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    revision_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_approver_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        nullable=True,
    )

    current_approver_role: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return (
            f"<WorkflowRequest {self.id} {self.kind} {self.status} v{self.version}>"
        )

    def to_dto(self) -> WorkflowRequest:
        return WorkflowRequest(
            id=self.id,
            kind=RequestKind(self.kind),
            requester_id=self.requester_id,
            requester_role=Role.coerce(self.requester_role),
            status=Status(self.status),
            version=self.version,
            revision_version=self.revision_version,
            current_approver_id=self.current_approver_id,
            current_approver_role=(
                Role(self.current_approver_role) if self.current_approver_role else None
            ),
            payload=dict(self.payload or {}),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
