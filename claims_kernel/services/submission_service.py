"""
claims_kernel.services.submission_service -- Claim submission and resubmission.

Responsibility:
    Creates new claims in Pending after automated verification, and reopens
    Returned claims for a second review round.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.

Invariants enforced:
    - Nothing is persisted when ``auto_verify`` reports an error.
    - New and resubmitted claims always enter the workflow in Pending with
      submission_date = clock.now().
    - Only the owning lecturer may resubmit, and only from Returned.  The
      previous review dates and notes are kept for the audit trail.

Failure modes:
    - InvalidClaimPeriodError: period is not a valid ``YYYY-MM`` month.
    - UserNotFoundError: lecturer missing or not a Lecturer.
    - ClaimNotFoundError: resubmitted claim id unknown.
    - ClaimNotEditableError: resubmission by a non-owner or from a status
      other than Returned.
    - ClaimValidationFailedError: auto_verify found errors.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from claims_kernel.domain.claim import Claim, ClaimPeriod, ClaimStatus, UserRole
from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.domain.validation import ValidationResult
from claims_kernel.exceptions import (
    ClaimNotEditableError,
    ClaimNotFoundError,
    ClaimValidationFailedError,
    UserNotFoundError,
)
from claims_kernel.logging_config import LogContext, get_logger
from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.user import UserModel
from claims_kernel.selectors.claim_selector import ClaimSelector
from claims_kernel.services.base import BaseService
from claims_kernel.services.validation_service import ValidationEngine

logger = get_logger("services.submission")


@dataclass(frozen=True)
class SubmissionResult:
    """The persisted claim and the verification that admitted it."""

    claim: Claim
    validation: ValidationResult


class ClaimSubmissionService(BaseService[ClaimModel]):
    """Entry point of lecturer claims into the approval workflow."""

    def __init__(
        self,
        session: Session,
        validation_engine: ValidationEngine | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._validation = validation_engine or ValidationEngine(
            ClaimSelector(session), clock=self._clock
        )

    def submit_claim(
        self,
        lecturer_id: UUID,
        period: str,
        hours_worked: Decimal,
        hourly_rate: Decimal,
        notes: str | None = None,
    ) -> SubmissionResult:
        """
        Verify and persist a new claim in Pending.

        Args:
            lecturer_id: Submitting lecturer.
            period: Month worked, ``YYYY-MM``.
            hours_worked: Hours claimed for the month.
            hourly_rate: Rate claimed.
            notes: Optional lecturer notes.

        Returns:
            SubmissionResult with the persisted claim (warnings included).
        """
        token = str(ClaimPeriod.parse(period))
        lecturer = self._require_lecturer(lecturer_id)

        candidate = Claim(
            claim_id=uuid4(),
            lecturer_id=lecturer.id,
            period=token,
            hours_worked=Decimal(hours_worked),
            hourly_rate=Decimal(hourly_rate),
            status=ClaimStatus.PENDING,
            submission_date=self._clock.now(),
            lecturer_notes=notes,
        )

        with LogContext.bind(claim_id=str(candidate.claim_id), actor_id=str(lecturer_id)):
            validation = self._verify(candidate)

            model = ClaimModel.from_dto(candidate)
            self.session.add(model)
            self.session.flush()

            logger.info(
                "claim_submitted",
                extra={
                    "period": token,
                    "total_amount": str(candidate.total_amount),
                    "risk_score": validation.risk_score,
                    "recommended_action": validation.recommended_action.value,
                },
            )

        return SubmissionResult(claim=model.to_dto(), validation=validation)

    def resubmit_claim(
        self,
        claim_id: UUID,
        lecturer_id: UUID,
        hours_worked: Decimal | None = None,
        hourly_rate: Decimal | None = None,
        notes: str | None = None,
    ) -> SubmissionResult:
        """
        Reopen a Returned claim, optionally with corrected figures.

        Omitted arguments keep the claim's current values.
        """
        model = self.session.get(ClaimModel, claim_id)
        if model is None:
            raise ClaimNotFoundError(str(claim_id))
        if model.lecturer_id != lecturer_id:
            raise ClaimNotEditableError(
                str(claim_id), model.status, "only the submitting lecturer may resubmit"
            )
        if model.status != ClaimStatus.RETURNED.value:
            raise ClaimNotEditableError(
                str(claim_id), model.status, "only returned claims can be resubmitted"
            )

        current = model.to_dto()
        candidate = replace(
            current,
            hours_worked=(
                Decimal(hours_worked) if hours_worked is not None else current.hours_worked
            ),
            hourly_rate=(
                Decimal(hourly_rate) if hourly_rate is not None else current.hourly_rate
            ),
            lecturer_notes=notes if notes is not None else current.lecturer_notes,
            status=ClaimStatus.PENDING,
            submission_date=self._clock.now(),
        )

        with LogContext.bind(claim_id=str(claim_id), actor_id=str(lecturer_id)):
            validation = self._verify(candidate)

            model.hours_worked = candidate.hours_worked
            model.hourly_rate = candidate.hourly_rate
            model.lecturer_notes = candidate.lecturer_notes
            model.status = ClaimStatus.PENDING.value
            model.submission_date = candidate.submission_date
            self.session.flush()

            logger.info(
                "claim_resubmitted",
                extra={
                    "total_amount": str(candidate.total_amount),
                    "risk_score": validation.risk_score,
                },
            )

        return SubmissionResult(claim=model.to_dto(), validation=validation)

    def _require_lecturer(self, lecturer_id: UUID) -> UserModel:
        lecturer = self.session.get(UserModel, lecturer_id)
        if lecturer is None or lecturer.role != UserRole.LECTURER.value:
            raise UserNotFoundError(str(lecturer_id), "Lecturer")
        return lecturer

    def _verify(self, candidate: Claim) -> ValidationResult:
        validation = self._validation.auto_verify(candidate)
        if not validation.is_valid:
            logger.warning(
                "claim_verification_failed",
                extra={"errors": list(validation.errors)},
            )
            raise ClaimValidationFailedError(
                validation.errors, validation.warnings, validation.risk_score
            )
        return validation
