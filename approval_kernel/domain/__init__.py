"""
Pure domain layer.

Value types, the transition state machine, hierarchy resolution and
approver routing.  Nothing here touches the ORM or the database.
"""

from approval_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from approval_kernel.domain.dtos import (
    ApprovalLogEntry,
    RequestVersionSnapshot,
    TransitionResult,
    WorkflowRequest,
)
from approval_kernel.domain.hierarchy import (
    ActorInfo,
    ChainLink,
    DirectoryPort,
    HierarchyResolver,
    InMemoryDirectory,
)
from approval_kernel.domain.workflow import (
    APPROVER_ROLE_BY_STATUS,
    STEP_NAMES,
    Action,
    RequestKind,
    Role,
    Status,
)

__all__ = [
    "APPROVER_ROLE_BY_STATUS",
    "STEP_NAMES",
    "Action",
    "ActorInfo",
    "ApprovalLogEntry",
    "ChainLink",
    "Clock",
    "DeterministicClock",
    "DirectoryPort",
    "HierarchyResolver",
    "InMemoryDirectory",
    "RequestKind",
    "RequestVersionSnapshot",
    "Role",
    "Status",
    "SystemClock",
    "TransitionResult",
    "WorkflowRequest",
]
