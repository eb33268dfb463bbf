"""
Pure domain layer.

This module contains data transfer objects and rule logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.  Time enters only
through an injected Clock.
"""

from claims_kernel.domain.claim import (
    Claim,
    ClaimPeriod,
    ClaimStatus,
    DocumentInfo,
    DocumentRules,
    UserInfo,
    UserRole,
)
from claims_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from claims_kernel.domain.validation import (
    ClaimDataProvider,
    RecommendedAction,
    ValidationResult,
    ValidationSnapshot,
    ValidationThresholds,
)
from claims_kernel.domain.workflow import (
    CLAIM_TRANSITIONS,
    TERMINAL_CLAIM_STATUSES,
    ApprovalAction,
    ReviewStage,
    WorkflowDecision,
    WorkflowFailure,
)

__all__ = [
    "CLAIM_TRANSITIONS",
    "TERMINAL_CLAIM_STATUSES",
    "ApprovalAction",
    "Claim",
    "ClaimDataProvider",
    "ClaimPeriod",
    "ClaimStatus",
    "Clock",
    "DeterministicClock",
    "DocumentInfo",
    "DocumentRules",
    "RecommendedAction",
    "ReviewStage",
    "SystemClock",
    "UserInfo",
    "UserRole",
    "ValidationResult",
    "ValidationSnapshot",
    "ValidationThresholds",
    "WorkflowDecision",
    "WorkflowFailure",
]
