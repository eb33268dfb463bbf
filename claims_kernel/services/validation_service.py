"""
claims_kernel.services.validation_service -- Automated claim verification.

Responsibility:
    Gathers the persisted state a claim's rules depend on through a
    ``ClaimDataProvider`` and runs the pure rule set from
    ``domain/validation.py``.  Exposes the three checks reviewers and the
    submission flow use: ``validate``, ``auto_verify`` and
    ``meets_approval_criteria``.

Architecture position:
    Kernel > Services.  Read-only: it never writes through the provider.

Invariants enforced:
    - No exception escapes ``validate`` or ``auto_verify``; an unexpected
      failure becomes a single "System error during validation" entry with
      is_valid False and a manual-review recommendation.
    - A lecturer that cannot be found only skips the default-rate check.
    - Results are computed per call and never cached.

Failure modes:
    - Provider read failures are logged at ERROR with the traceback and
      reported through ``ValidationResult.system_error()``.
"""

from __future__ import annotations

from claims_kernel.domain import validation as rules
from claims_kernel.domain.claim import Claim
from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.domain.validation import (
    ClaimDataProvider,
    ValidationResult,
    ValidationSnapshot,
    ValidationThresholds,
)
from claims_kernel.logging_config import get_logger

logger = get_logger("services.validation")


class ValidationEngine:
    """Runs the claim rule set against live persisted state."""

    def __init__(
        self,
        provider: ClaimDataProvider,
        thresholds: ValidationThresholds | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._provider = provider
        self._thresholds = thresholds or ValidationThresholds()
        self._clock = clock or SystemClock()

    @property
    def thresholds(self) -> ValidationThresholds:
        return self._thresholds

    def validate(self, claim: Claim) -> ValidationResult:
        """Full assessment of ``claim`` against current persisted state."""
        return self._run(claim, submission=False)

    def auto_verify(self, claim: Claim) -> ValidationResult:
        """``validate`` plus the first-submission period window checks."""
        return self._run(claim, submission=True)

    def meets_approval_criteria(
        self,
        claim: Claim,
        result: ValidationResult | None = None,
    ) -> bool:
        """
        Auto-approval gate.

        Pass the ``result`` of an earlier ``validate`` call to reuse it;
        otherwise the claim is evaluated once here.
        """
        if result is None:
            result = self.validate(claim)
        return rules.meets_approval_criteria(claim, result, self._thresholds)

    def _run(self, claim: Claim, *, submission: bool) -> ValidationResult:
        try:
            snapshot = self._snapshot(claim)
            result = rules.evaluate_claim(claim, snapshot, self._thresholds)
            if submission:
                result = rules.evaluate_submission_window(
                    result, claim, self._clock.today(), self._thresholds
                )
        except Exception:
            logger.exception(
                "claim_validation_error",
                extra={"claim_id": str(claim.claim_id)},
            )
            return ValidationResult.system_error()

        logger.info(
            "claim_validated",
            extra={
                "claim_id": str(claim.claim_id),
                "mode": "auto_verify" if submission else "validate",
                "is_valid": result.is_valid,
                "error_count": len(result.errors),
                "warning_count": len(result.warnings),
                "risk_score": result.risk_score,
                "recommended_action": result.recommended_action.value,
            },
        )
        return result

    def _snapshot(self, claim: Claim) -> ValidationSnapshot:
        lecturer = self._provider.get_user(claim.lecturer_id)
        if lecturer is None:
            logger.warning(
                "claim_lecturer_missing",
                extra={
                    "claim_id": str(claim.claim_id),
                    "lecturer_id": str(claim.lecturer_id),
                },
            )
        return ValidationSnapshot(
            lecturer_default_rate=(
                lecturer.default_hourly_rate if lecturer is not None else None
            ),
            active_document_count=self._provider.count_active_documents(
                claim.claim_id
            ),
            has_duplicate_period=self._provider.has_open_claim_for_period(
                claim.lecturer_id,
                claim.period,
                exclude_claim_id=claim.claim_id,
            ),
        )
