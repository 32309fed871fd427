"""
VersionArchiver -- snapshots of requests sent back for revision.

Responsibility:
    Decides when a transition is a send-back and stores a frozen copy of
    the request as it stood before the revision counter moved.

Invariants enforced:
    - Snapshots are append-only (db/immutability.py).
    - ``version_number`` is the revision counter BEFORE the increment, so
      the first send-back archives revision 0.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.dtos import RequestVersionSnapshot
from approval_kernel.domain.workflow import Status
from approval_kernel.logging_config import get_logger
from approval_kernel.models.request_version import RequestVersionModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.version_archiver")


def is_send_back(
    previous: Status,
    new: Status,
    editable: Status = Status.DRAFT,
) -> bool:
    """True when a transition returns a request to the editable state."""
    return new == editable and previous != editable


def build_snapshot(request: Any) -> dict[str, Any]:
    """Snapshot payload of a ``WorkflowRequestModel`` before mutation."""
    return {
        "status": request.status,
        "payload": dict(request.payload or {}),
        "current_approver_role": request.current_approver_role,
        "revision_version": request.revision_version,
    }


class VersionArchiver(BaseService[RequestVersionModel]):
    """Stores and lists request version snapshots."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def archive(
        self,
        request_id: str,
        version_number: int,
        snapshot_payload: dict[str, Any],
    ) -> RequestVersionSnapshot:
        snapshot = RequestVersionModel(
            request_id=request_id,
            version_number=version_number,
            snapshot_data=snapshot_payload,
            created_at=self._clock.now(),
        )
        self.session.add(snapshot)
        self.session.flush()

        logger.info(
            "request_version_archived",
            extra={"request_id": request_id, "version_number": version_number},
        )
        return snapshot.to_dto()

    def versions(self, request_id: str) -> list[RequestVersionSnapshot]:
        rows = self.session.execute(
            select(RequestVersionModel)
            .where(RequestVersionModel.request_id == request_id)
            .order_by(RequestVersionModel.version_number.desc())
        ).scalars()
        return [row.to_dto() for row in rows]
