"""
Data transfer objects returned by the approval kernel.

All DTOs are frozen; services hand them out instead of ORM instances so
callers never hold objects bound to a closed session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from approval_kernel.domain.workflow import Action, RequestKind, Role, Status


@dataclass(frozen=True)
class WorkflowRequest:
    id: str
    kind: RequestKind
    requester_id: str
    requester_role: Role
    status: Status
    version: int
    revision_version: int
    current_approver_id: str | None
    current_approver_role: Role | None
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ApprovalLogEntry:
    id: str
    request_id: str
    seq: int
    actor_id: str
    action: Action
    step_name: str
    performed_at: datetime
    comment: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class RequestVersionSnapshot:
    id: str
    request_id: str
    version_number: int
    snapshot_data: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a committed transition."""

    request_id: str
    previous_status: Status
    new_status: Status
    version: int
    current_approver_id: str | None = None
    current_approver_role: Role | None = None
