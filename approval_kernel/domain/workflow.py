"""
Workflow vocabulary (``approval_kernel.domain.workflow``).

Responsibility
--------------
Closed enumerations shared by every layer: request kinds, actor roles,
request statuses and workflow actions, plus the static lookup tables
derived from them (approver role per pending status, human step labels).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Imported by
``approval_config`` (schema parsing), models, services and selectors.

Invariants enforced
-------------------
* Every ``Status`` has a ``STEP_NAMES`` label; checked at import time.
* ``APPROVER_ROLE_BY_STATUS`` is the only source for the role that owns a
  pending status.
"""

from __future__ import annotations

from enum import Enum


class RequestKind(str, Enum):
    """Kinds of request driven through the approval workflow."""

    MANPOWER = "manpower"
    BUSINESS_TRIP = "business_trip"


class Role(str, Enum):
    """Organisational roles known to the workflow."""

    REQUESTER = "REQUESTER"
    MANAGER = "MANAGER"
    HR = "HR"
    FINANCE = "FINANCE"
    CEO = "CEO"
    ADMIN = "ADMIN"

    @classmethod
    def coerce(cls, value: "Role | str | None") -> "Role":
        """Map unknown or missing roles to the default rank."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.REQUESTER


class Status(str, Enum):
    """Request lifecycle states."""

    DRAFT = "DRAFT"
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_HR = "PENDING_HR"
    PENDING_FINANCE = "PENDING_FINANCE"
    PENDING_CEO = "PENDING_CEO"
    APPROVED_OPEN = "APPROVED_OPEN"
    APPROVED = "APPROVED"
    HIRING_IN_PROGRESS = "HIRING_IN_PROGRESS"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    ARCHIVED = "ARCHIVED"


class Action(str, Enum):
    """Actions an actor can apply to a request."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_CHANGE = "REQUEST_CHANGE"
    HOLD = "HOLD"
    CANCEL = "CANCEL"
    ARCHIVE = "ARCHIVE"


APPROVAL_ROLES: frozenset[Role] = frozenset({
    Role.MANAGER,
    Role.HR,
    Role.FINANCE,
    Role.CEO,
})

APPROVER_ROLE_BY_STATUS: dict[Status, Role] = {
    Status.PENDING_MANAGER: Role.MANAGER,
    Status.PENDING_HR: Role.HR,
    Status.PENDING_FINANCE: Role.FINANCE,
    Status.PENDING_CEO: Role.CEO,
}

PENDING_STATUSES: frozenset[Status] = frozenset(APPROVER_ROLE_BY_STATUS)

# Actions taken by whoever currently holds the approval step.
APPROVER_ACTIONS: frozenset[Action] = frozenset({
    Action.APPROVE,
    Action.REJECT,
    Action.HOLD,
})

# Actions reserved for the request owner.
OWNER_ACTIONS: frozenset[Action] = frozenset({
    Action.SUBMIT,
    Action.CANCEL,
    Action.ARCHIVE,
})

SUBMISSION_STEP_NAME = "Submission"

STEP_NAMES: dict[Status, str] = {
    Status.DRAFT: "Draft",
    Status.PENDING_MANAGER: "Manager Review",
    Status.PENDING_HR: "HR Review",
    Status.PENDING_FINANCE: "Finance Review",
    Status.PENDING_CEO: "CEO Review",
    Status.APPROVED_OPEN: "Approved",
    Status.APPROVED: "Approved",
    Status.HIRING_IN_PROGRESS: "Hiring",
    Status.REJECTED: "Rejected",
    Status.CANCELLED: "Cancelled",
    Status.ARCHIVED: "Archived",
}

_missing_labels = set(Status) - set(STEP_NAMES)
if _missing_labels:
    raise RuntimeError(
        f"STEP_NAMES is missing labels for: {sorted(s.value for s in _missing_labels)}"
    )


def step_name_for(action: Action, exited_status: Status) -> str:
    """Label written to the approval log for ``action`` leaving ``exited_status``."""
    if action is Action.SUBMIT:
        return SUBMISSION_STEP_NAME
    return STEP_NAMES[exited_status]
