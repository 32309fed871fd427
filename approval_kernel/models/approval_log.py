"""
Module: approval_kernel.models.approval_log
Responsibility: ORM persistence for the per-request approval log.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are append-only (db/immutability.py).
    - (request_id, seq) is unique; seq orders a request's history.
"""

from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import ID_LENGTH, Base
from approval_kernel.domain.dtos import ApprovalLogEntry
from approval_kernel.domain.workflow import Action


class ApprovalLogModel(Base):
    """One committed workflow action."""

    __tablename__ = "approval_logs"
    __table_args__ = (
        UniqueConstraint("request_id", "seq", name="uq_approval_log_request_seq"),
        Index("idx_approval_log_actor", "actor_id"),
    )

    request_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("workflow_requests.id"),
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    actor_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)

    action: Mapped[str] = mapped_column(String(32), nullable=False)

    step_name: Mapped[str] = mapped_column(String(64), nullable=False)

    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def to_dto(self) -> ApprovalLogEntry:
        return ApprovalLogEntry(
            id=self.id,
            request_id=self.request_id,
            seq=self.seq,
            actor_id=self.actor_id,
            action=Action(self.action),
            step_name=self.step_name,
            performed_at=self.performed_at,
            comment=self.comment,
            ip_address=self.ip_address,
        )
