"""
Claim validation rules (``claims_kernel.domain.validation``).

Responsibility
--------------
Pure rule evaluation for lecturer claims.  Given a claim, a snapshot of the
persisted state it depends on (lecturer default rate, active document
count, whether another open claim exists for the same period) and the
configured thresholds, produce a ``ValidationResult``: hard errors, soft
warnings, a 0-100 risk score and a recommended action.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  The ``ClaimDataProvider`` protocol
describes the read seam; ``ValidationEngine`` in ``services/`` gathers the
snapshot through it and calls into this module.

Invariants enforced
-------------------
* Each rule either adds an error (claim invalid) or a warning with a risk
  increment, never both for the same condition.
* The recommended action is derived once from the final risk score, after
  every rule has run.
* The risk score never exceeds ``RISK_SCORE_CEILING``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from claims_kernel.domain.claim import (
    Claim,
    ClaimPeriod,
    UserInfo,
    add_months,
)
from claims_kernel.exceptions import InvalidClaimPeriodError

RISK_SCORE_CEILING = 100

SYSTEM_ERROR_MESSAGE = "System error during validation"


class RecommendedAction(str, Enum):
    """Advisory label derived from the final risk score."""

    MANUAL_REVIEW = "Manual Review Required"
    REVIEW_WITH_CAUTION = "Review with Caution"
    APPROVE_WITH_NOTES = "Approve with Notes"
    AUTO_APPROVE = "Auto-Approve"


# =========================================================================
# Thresholds
# =========================================================================


@dataclass(frozen=True)
class ValidationThresholds:
    """Policy limits, risk weights and action cut-offs.

    Defaults are the institution's standing policy; ``claims_config`` can
    load an alternative set from YAML.
    """

    min_hours: Decimal = Decimal("0.1")
    max_hours: Decimal = Decimal("744")
    min_rate: Decimal = Decimal("1")
    max_rate: Decimal = Decimal("9999.99")
    high_hours: Decimal = Decimal("200")
    high_amount: Decimal = Decimal("100000")
    required_documents: int = 1
    stale_after_months: int = 3

    rate_mismatch_risk: int = 20
    high_hours_risk: int = 15
    high_amount_risk: int = 25
    missing_documents_risk: int = 10
    duplicate_period_risk: int = 50
    stale_period_risk: int = 10

    manual_review_at: int = 50
    caution_at: int = 30
    auto_approve_below: int = 30


# =========================================================================
# Inputs and result
# =========================================================================


@dataclass(frozen=True)
class ValidationSnapshot:
    """Persisted state a single evaluation depends on."""

    lecturer_default_rate: Decimal | None = None
    active_document_count: int = 0
    has_duplicate_period: bool = False


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one evaluation.  Never cached: state may change between calls."""

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    risk_score: int = 0
    recommended_action: RecommendedAction = RecommendedAction.AUTO_APPROVE
    active_document_count: int = 0

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @classmethod
    def system_error(cls) -> ValidationResult:
        """Result used when evaluation itself failed unexpectedly."""
        return cls(
            is_valid=False,
            errors=(SYSTEM_ERROR_MESSAGE,),
            recommended_action=RecommendedAction.MANUAL_REVIEW,
        )


class ClaimDataProvider(Protocol):
    """Read access the validation engine needs from persistence."""

    def get_user(self, user_id: UUID) -> UserInfo | None:
        """Return the user, or None when no such user exists."""
        ...

    def count_active_documents(self, claim_id: UUID) -> int:
        """Number of active supporting documents attached to the claim."""
        ...

    def has_open_claim_for_period(
        self,
        lecturer_id: UUID,
        period: str,
        exclude_claim_id: UUID | None = None,
    ) -> bool:
        """True if another non-rejected claim exists for lecturer + period."""
        ...


# =========================================================================
# Evaluation
# =========================================================================


@dataclass
class _Findings:
    """Mutable accumulator used while rules run."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    risk_score: int = 0

    @classmethod
    def from_result(cls, result: ValidationResult) -> _Findings:
        return cls(
            errors=list(result.errors),
            warnings=list(result.warnings),
            risk_score=result.risk_score,
        )

    def error(self, message: str, risk: int = 0) -> None:
        self.errors.append(message)
        self.risk_score += risk

    def warn(self, message: str, risk: int) -> None:
        self.warnings.append(message)
        self.risk_score += risk

    def to_result(
        self,
        thresholds: ValidationThresholds,
        active_document_count: int,
    ) -> ValidationResult:
        score = min(self.risk_score, RISK_SCORE_CEILING)
        return ValidationResult(
            is_valid=not self.errors,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            risk_score=score,
            recommended_action=recommend_action(score, thresholds),
            active_document_count=active_document_count,
        )


def recommend_action(
    risk_score: int,
    thresholds: ValidationThresholds,
) -> RecommendedAction:
    """Map a final risk score to the advisory action, highest band first."""
    if risk_score >= thresholds.manual_review_at:
        return RecommendedAction.MANUAL_REVIEW
    if risk_score >= thresholds.caution_at:
        return RecommendedAction.REVIEW_WITH_CAUTION
    if risk_score > 0:
        return RecommendedAction.APPROVE_WITH_NOTES
    return RecommendedAction.AUTO_APPROVE


def evaluate_claim(
    claim: Claim,
    snapshot: ValidationSnapshot,
    thresholds: ValidationThresholds,
) -> ValidationResult:
    """Run the full rule set against a claim.

    All rules run unconditionally; the risk score and recommended action
    are computed once at the end.
    """
    t = thresholds
    findings = _Findings()
    hours = claim.hours_worked
    rate = claim.hourly_rate

    # Range checks
    if hours < t.min_hours:
        findings.error(f"Hours worked ({hours}) is below minimum ({t.min_hours})")
    if hours > t.max_hours:
        findings.error(f"Hours worked ({hours}) exceeds maximum ({t.max_hours})")
    if rate < t.min_rate:
        findings.error(f"Hourly rate (R{rate}) is below minimum (R{t.min_rate})")
    if rate > t.max_rate:
        findings.error(f"Hourly rate (R{rate}) exceeds maximum (R{t.max_rate})")

    # Advisories
    default_rate = snapshot.lecturer_default_rate
    if default_rate is not None and rate != default_rate:
        findings.warn(
            f"Rate (R{rate}) differs from lecturer's default rate (R{default_rate})",
            t.rate_mismatch_risk,
        )

    if hours > t.high_hours:
        findings.warn(
            f"High hours claimed ({hours} hours). Please verify timesheet.",
            t.high_hours_risk,
        )

    if claim.total_amount > t.high_amount:
        findings.warn(
            f"High total amount (R{claim.total_amount:,.2f}). "
            "Requires additional verification.",
            t.high_amount_risk,
        )

    if snapshot.active_document_count < t.required_documents:
        findings.warn(
            f"Only {snapshot.active_document_count} document(s) uploaded. "
            f"Minimum recommended: {t.required_documents}",
            t.missing_documents_risk,
        )

    # One open claim per lecturer and period
    if snapshot.has_duplicate_period:
        findings.error(
            "Duplicate claim detected for this month/year",
            t.duplicate_period_risk,
        )

    return findings.to_result(t, snapshot.active_document_count)


def evaluate_submission_window(
    result: ValidationResult,
    claim: Claim,
    today: date,
    thresholds: ValidationThresholds,
) -> ValidationResult:
    """Fold the first-submission date checks into an existing result.

    The period is read as the first day of its month.  A future month is an
    error; a month older than ``stale_after_months`` is a warning.
    """
    findings = _Findings.from_result(result)
    try:
        period = ClaimPeriod.parse(claim.period)
    except InvalidClaimPeriodError:
        findings.error(f"Claim period {claim.period!r} is not a valid YYYY-MM month")
    else:
        claim_date = period.first_day
        if claim_date > today:
            findings.error("Cannot submit claims for future months")
        if claim_date < add_months(today, -thresholds.stale_after_months):
            findings.warn(
                f"Claim is for more than {thresholds.stale_after_months} months ago. "
                "May require additional justification.",
                thresholds.stale_period_risk,
            )
    return findings.to_result(thresholds, result.active_document_count)


def meets_approval_criteria(
    claim: Claim,
    result: ValidationResult,
    thresholds: ValidationThresholds,
) -> bool:
    """Auto-approval gate over an already computed result.

    Convenience restatement of two conditions the rule set also warns on,
    so callers get a single yes/no without re-reading the warnings.
    """
    return (
        result.is_valid
        and result.risk_score < thresholds.auto_approve_below
        and result.active_document_count >= thresholds.required_documents
        and claim.total_amount <= thresholds.high_amount
    )
