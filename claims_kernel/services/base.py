"""
BaseService -- abstract base for the claims kernel write services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service that mutates claims or documents.  Services receive a SQLAlchemy
    ``Session`` and persist with ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain layer.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back the outer transaction themselves.  The
      caller (``session_scope()``, a web request handler, or the test
      harness) owns commit/rollback.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from claims_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only (read) methods -- those belong in
          ``claims_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
