"""
Typed Exception Hierarchy for the Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine (HTTP handlers, batch jobs, tests) must react
differently to "someone else changed this request" than to "you are not
allowed to approve this". Parsing messages to tell them apart is fragile:

    try:
        engine.transition(request_id, actor_id, Action.APPROVE)
    except Exception as e:
        if "Version mismatch" in str(e):   # breaks when wording changes
            ...

Every failure therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute drawn from the closed ErrorCode enum
  3. Structured DATA stored as attributes

    try:
        engine.transition(request_id, actor_id, Action.APPROVE)
    except OptimisticLockError as e:
        return {"error": e.code, "expected": e.expected_version}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- ActorNotFoundError
    |
    +-- InvalidTransitionError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ForbiddenError
    |
    +-- PayloadValidationError
    |
    +-- InternalError
        +-- PersistenceError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                | When Raised
--------------------|---------------------------------------------------------
NOT_FOUND           | Request or acting user does not exist
INVALID_TRANSITION  | (status, action) pair absent from the transition table
CONFLICT            | Stored version differs from the caller's version
FORBIDDEN           | Actor is not entitled to perform the action
VALIDATION_ERROR    | Request payload violates a business rule
INTERNAL            | Persistence failure or append-only record tampering

===============================================================================
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Closed set of machine-readable error codes."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL = "INTERNAL"


class WorkflowKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must set a `code` class attribute from ErrorCode.
    """

    code: str = "WORKFLOW_ERROR"


# Lookup exceptions


class NotFoundError(WorkflowKernelError):
    """Base exception for missing entities."""

    code: str = ErrorCode.NOT_FOUND.value


class RequestNotFoundError(NotFoundError):
    """Workflow request does not exist."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class ActorNotFoundError(NotFoundError):
    """Acting user does not exist in the directory."""

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__(f"Actor not found: {actor_id}")


# State machine exceptions


class InvalidTransitionError(WorkflowKernelError):
    """The (status, action) pair has no entry in the transition table."""

    code: str = ErrorCode.INVALID_TRANSITION.value

    def __init__(self, status: str, action: str, kind: str | None = None):
        self.status = status
        self.action = action
        self.kind = kind
        super().__init__(f"Cannot perform {action} from status {status}")


# Concurrency exceptions


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency errors."""

    code: str = ErrorCode.CONFLICT.value


class OptimisticLockError(ConcurrencyError):
    """Stored version no longer matches the version the caller observed."""

    def __init__(
        self,
        request_id: str,
        expected_version: int,
        actual_version: int | None = None,
    ):
        self.request_id = request_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version mismatch on request {request_id} "
            f"(expected {expected_version}, found {actual_version}) "
            "- please refresh"
        )


# Authorization exceptions


class ForbiddenError(WorkflowKernelError):
    """Actor is not entitled to perform the action on this request."""

    code: str = ErrorCode.FORBIDDEN.value

    def __init__(self, actor_id: str, action: str, reason: str):
        self.actor_id = actor_id
        self.action = action
        self.reason = reason
        super().__init__(f"Actor {actor_id} may not {action}: {reason}")


# Payload exceptions


class PayloadValidationError(WorkflowKernelError):
    """Request payload violates a business rule."""

    code: str = ErrorCode.VALIDATION_ERROR.value

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Internal exceptions


class InternalError(WorkflowKernelError):
    """Base exception for failures the caller cannot correct."""

    code: str = ErrorCode.INTERNAL.value


class PersistenceError(InternalError):
    """The database rejected or failed a write; the transaction was rolled back."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class ImmutabilityViolationError(InternalError):
    """Attempted to modify or delete an append-only record."""

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
