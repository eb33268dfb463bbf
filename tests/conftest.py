"""
Pytest fixtures for the claims kernel test suite.

Provides:
- An in-memory SQLite engine created through ``init_engine_from_url``
- A per-test session joined to an outer transaction that is rolled back
- Deterministic clock, structured-log capture
- User and claim factories plus wired services

Environment Variables:
- DATABASE_URL: optional database URL.  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from claims_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from claims_kernel.domain.claim import ClaimStatus, UserRole
from claims_kernel.domain.clock import DeterministicClock
from claims_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.document import SupportingDocumentModel
from claims_kernel.models.user import UserModel
from claims_kernel.selectors.claim_selector import ClaimSelector
from claims_kernel.selectors.report_selector import ReportSelector
from claims_kernel.services.document_service import DocumentService
from claims_kernel.services.submission_service import ClaimSubmissionService
from claims_kernel.services.validation_service import ValidationEngine
from claims_kernel.services.workflow_service import WorkflowEngine

DEFAULT_DATABASE_URL = "sqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture claims_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow_engine):
            workflow_engine.process_workflow(...)
            logs = captured_logs()
            assert any(r["message"] == "workflow_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("claims_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session, tables created once."""
    eng = init_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection.
    ``session.commit()`` inside a test only releases a savepoint, and the
    outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock fixed at 2025-03-15 12:00 UTC."""
    return DeterministicClock(datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def make_user(session):
    """Factory fixture that persists a user and returns the ORM model."""

    def _make(
        role: UserRole = UserRole.LECTURER,
        *,
        first_name: str = "Thandi",
        last_name: str = "Nkosi",
        department: str | None = "Computer Science",
        default_hourly_rate: Decimal | None = None,
        is_active: bool = True,
    ) -> UserModel:
        suffix = uuid4().hex[:8]
        user = UserModel(
            username=f"{role.value}_{suffix}",
            email=f"{role.value}_{suffix}@example.ac.za",
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            department=department,
            default_hourly_rate=default_hourly_rate,
            is_active=is_active,
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def lecturer(make_user):
    """A lecturer whose default rate is R450."""
    return make_user(UserRole.LECTURER, default_hourly_rate=Decimal("450.00"))


@pytest.fixture
def coordinator(make_user):
    return make_user(
        UserRole.PROGRAMME_COORDINATOR, first_name="Pieter", last_name="Botha"
    )


@pytest.fixture
def manager(make_user):
    return make_user(UserRole.ACADEMIC_MANAGER, first_name="Aisha", last_name="Patel")


@pytest.fixture
def hr_user(make_user):
    return make_user(UserRole.HR, first_name="Lerato", last_name="Mokoena")


@pytest.fixture
def make_claim(session, deterministic_clock):
    """
    Factory fixture that persists a claim directly, bypassing submission.

    ``documents`` active supporting documents are attached.
    """

    def _make(
        lecturer: UserModel,
        *,
        period: str = "2025-02",
        hours_worked: Decimal = Decimal("100"),
        hourly_rate: Decimal = Decimal("450.00"),
        status: ClaimStatus = ClaimStatus.PENDING,
        documents: int = 1,
        submission_date: datetime | None = None,
        coordinator_approval_date: datetime | None = None,
        coordinator_notes: str | None = None,
        manager_approval_date: datetime | None = None,
        manager_notes: str | None = None,
    ) -> ClaimModel:
        claim = ClaimModel(
            lecturer_id=lecturer.id,
            period=period,
            hours_worked=hours_worked,
            hourly_rate=hourly_rate,
            status=status.value,
            submission_date=submission_date or deterministic_clock.now(),
            coordinator_approval_date=coordinator_approval_date,
            coordinator_notes=coordinator_notes,
            manager_approval_date=manager_approval_date,
            manager_notes=manager_notes,
        )
        for i in range(documents):
            claim.documents.append(
                SupportingDocumentModel(
                    file_name=f"timesheet_{i}.pdf",
                    file_type=".pdf",
                    file_size=1024,
                    storage_key=f"claims/{uuid4()}.pdf",
                    upload_date=deterministic_clock.now(),
                    is_active=True,
                )
            )
        session.add(claim)
        session.flush()
        return claim

    return _make


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def claim_selector(session):
    return ClaimSelector(session)


@pytest.fixture
def report_selector(session, deterministic_clock):
    return ReportSelector(session, deterministic_clock)


@pytest.fixture
def validation_engine(claim_selector, deterministic_clock):
    return ValidationEngine(claim_selector, clock=deterministic_clock)


@pytest.fixture
def workflow_engine(session, validation_engine, deterministic_clock):
    return WorkflowEngine(session, validation_engine, deterministic_clock)


@pytest.fixture
def submission_service(session, validation_engine, deterministic_clock):
    return ClaimSubmissionService(session, validation_engine, deterministic_clock)


@pytest.fixture
def document_service(session, deterministic_clock):
    return DocumentService(session, clock=deterministic_clock)
