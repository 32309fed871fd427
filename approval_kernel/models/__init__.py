"""ORM models for the approval kernel."""

from approval_kernel.models.actor import ActorModel, PositionModel
from approval_kernel.models.approval_log import ApprovalLogModel
from approval_kernel.models.request import WorkflowRequestModel
from approval_kernel.models.request_version import RequestVersionModel

__all__ = [
    "ActorModel",
    "ApprovalLogModel",
    "PositionModel",
    "RequestVersionModel",
    "WorkflowRequestModel",
]
