"""Selectors for the claims kernel (read side)."""

from claims_kernel.selectors.claim_selector import ClaimSelector
from claims_kernel.selectors.report_selector import (
    LecturerPaymentSummary,
    PaymentInvoice,
    ReportSelector,
)

__all__ = [
    "ClaimSelector",
    "LecturerPaymentSummary",
    "PaymentInvoice",
    "ReportSelector",
]
