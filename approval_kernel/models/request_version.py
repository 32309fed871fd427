"""
Module: approval_kernel.models.request_version
Responsibility: ORM persistence for snapshots archived when a request is
    sent back to DRAFT.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are append-only (db/immutability.py).
    - (request_id, version_number) is unique.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import ID_LENGTH, Base
from approval_kernel.domain.dtos import RequestVersionSnapshot


class RequestVersionModel(Base):
    """Frozen copy of a request as it stood before a send-back."""

    __tablename__ = "request_versions"
    __table_args__ = (
        UniqueConstraint(
            "request_id", "version_number", name="uq_request_version_number"
        ),
    )

    request_id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("workflow_requests.id"),
        nullable=False,
    )

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    snapshot_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def to_dto(self) -> RequestVersionSnapshot:
        return RequestVersionSnapshot(
            id=self.id,
            request_id=self.request_id,
            version_number=self.version_number,
            snapshot_data=dict(self.snapshot_data),
            created_at=self.created_at,
        )
