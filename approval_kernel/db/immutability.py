"""
ORM-Level Append-Only Enforcement.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                | When Immutable          | Why
----------------------|-------------------------|--------------------------------
ApprovalLogModel      | ALWAYS (from creation)  | Audit trail of every decision
RequestVersionModel   | ALWAYS (from creation)  | Snapshot of a sent-back revision

SQLAlchemy fires ``before_update``/``before_delete`` mapper events before the
SQL reaches the database.  The listeners below raise
``ImmutabilityViolationError`` so the flush aborts and the surrounding
transaction rolls back.

Bulk ``UPDATE``/``DELETE`` statements issued through ``session.execute``
bypass mapper events; the kernel never issues them against these tables.

===============================================================================
USAGE
===============================================================================

    from approval_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from approval_kernel.exceptions import ImmutabilityViolationError
from approval_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} records are append-only; {operation} is not allowed",
    )


def _check_approval_log_update(mapper, connection, target):
    _block("ApprovalLog", target, "UPDATE")


def _check_approval_log_delete(mapper, connection, target):
    _block("ApprovalLog", target, "DELETE")


def _check_request_version_update(mapper, connection, target):
    _block("RequestVersion", target, "UPDATE")


def _check_request_version_delete(mapper, connection, target):
    _block("RequestVersion", target, "DELETE")


def _listeners():
    from approval_kernel.models.approval_log import ApprovalLogModel
    from approval_kernel.models.request_version import RequestVersionModel

    return (
        (ApprovalLogModel, "before_update", _check_approval_log_update),
        (ApprovalLogModel, "before_delete", _check_approval_log_delete),
        (RequestVersionModel, "before_update", _check_request_version_update),
        (RequestVersionModel, "before_delete", _check_request_version_delete),
    )


def register_immutability_listeners() -> None:
    """Register append-only listeners.  Safe to call more than once."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """
    Remove append-only listeners.

    WARNING: Only use this in tests that must bypass the rule on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
