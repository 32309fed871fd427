"""Kernel services: the workflow engine and the flush-only helpers it composes."""

from approval_kernel.services.audit_trail import AuditTrail
from approval_kernel.services.concurrency_guard import ConcurrencyGuard
from approval_kernel.services.directory import SqlActorDirectory
from approval_kernel.services.version_archiver import VersionArchiver
from approval_kernel.services.workflow_engine import WorkflowEngine

__all__ = [
    "AuditTrail",
    "ConcurrencyGuard",
    "SqlActorDirectory",
    "VersionArchiver",
    "WorkflowEngine",
]
