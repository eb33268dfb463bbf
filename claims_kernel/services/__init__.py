"""Services for the claims kernel (write side)."""

from claims_kernel.services.document_service import DocumentService
from claims_kernel.services.submission_service import (
    ClaimSubmissionService,
    SubmissionResult,
)
from claims_kernel.services.validation_service import ValidationEngine
from claims_kernel.services.workflow_service import WorkflowEngine

__all__ = [
    "ClaimSubmissionService",
    "DocumentService",
    "SubmissionResult",
    "ValidationEngine",
    "WorkflowEngine",
]
