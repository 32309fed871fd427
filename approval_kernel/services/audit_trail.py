"""
AuditTrail -- append-only approval log writer.

Responsibility:
    Records one ``ApprovalLogModel`` row per committed workflow action,
    inside the caller's transaction.

Invariants enforced:
    - Entries are never updated or deleted (db/immutability.py).
    - ``seq`` is allocated per request as max(seq) + 1.  Two writers racing
      on the same request cannot both commit: the version CAS that
      precedes every record() admits only one of them, and the
      (request_id, seq) unique constraint backs that up.

Failure modes:
    - IntegrityError if a duplicate seq slips past the version CAS.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.dtos import ApprovalLogEntry
from approval_kernel.domain.workflow import Action
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approval_log import ApprovalLogModel
from approval_kernel.services.base import BaseService

logger = get_logger("services.audit_trail")


class AuditTrail(BaseService[ApprovalLogModel]):
    """Writes and reads the approval log of a request."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _next_seq(self, request_id: str) -> int:
        current = self.session.execute(
            select(func.max(ApprovalLogModel.seq)).where(
                ApprovalLogModel.request_id == request_id
            )
        ).scalar()
        return (current or 0) + 1

    def record(
        self,
        request_id: str,
        actor_id: str,
        action: Action,
        step_name: str,
        comment: str | None = None,
        ip_address: str | None = None,
    ) -> ApprovalLogEntry:
        entry = ApprovalLogModel(
            request_id=request_id,
            seq=self._next_seq(request_id),
            actor_id=actor_id,
            action=Action(action).value,
            step_name=step_name,
            comment=comment,
            ip_address=ip_address,
            performed_at=self._clock.now(),
        )
        self.session.add(entry)
        self.session.flush()

        logger.debug(
            "approval_log_recorded",
            extra={
                "request_id": request_id,
                "seq": entry.seq,
                "step_name": step_name,
            },
        )
        return entry.to_dto()

    def history(self, request_id: str) -> list[ApprovalLogEntry]:
        rows = self.session.execute(
            select(ApprovalLogModel)
            .where(ApprovalLogModel.request_id == request_id)
            .order_by(ApprovalLogModel.seq)
        ).scalars()
        return [row.to_dto() for row in rows]
