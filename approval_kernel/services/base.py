"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and session contract.  Services receive a
    SQLAlchemy ``Session`` and persist through ``session.flush()`` --
    never ``session.commit()``.

Invariants enforced:
    Transaction boundaries belong to the caller (``session_scope``); a
    service never commits or rolls back, so a multi-step transition is
    atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from approval_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only helpers -- those belong in
          ``approval_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
