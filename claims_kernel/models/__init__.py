"""ORM models for the claims kernel."""

from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.document import SupportingDocumentModel
from claims_kernel.models.user import UserModel

__all__ = [
    "ClaimModel",
    "SupportingDocumentModel",
    "UserModel",
]
