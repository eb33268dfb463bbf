"""
Module: claims_kernel.selectors.report_selector
Responsibility: HR reporting reads over approved claims: filtered approved
    claim lists, per-lecturer payment summaries and payment invoices.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Only Approved claims contribute to earnings and invoice totals.
    - All money arithmetic is Decimal; nothing is rounded before the total.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from claims_kernel.domain.claim import Claim, ClaimPeriod, ClaimStatus, UserInfo, UserRole
from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.exceptions import UserNotFoundError
from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.user import UserModel
from claims_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LecturerPaymentSummary:
    """Claim counts and approved earnings for one lecturer."""

    lecturer: UserInfo
    total_claims: int
    approved_claims: int
    total_earnings: Decimal
    last_submission_date: datetime | None


@dataclass(frozen=True)
class PaymentInvoice:
    """Approved claims of one lecturer for one period, ready for payment."""

    invoice_number: str
    invoice_date: date
    lecturer: UserInfo
    period: str
    claims: tuple[Claim, ...]

    @property
    def total_amount(self) -> Decimal:
        return sum((c.total_amount for c in self.claims), Decimal("0"))


def invoice_number_for(lecturer_id: UUID, issued_on: date) -> str:
    """``INV-YYYYMMDD-XXXXXXXX`` using the first eight hex digits of the id."""
    return f"INV-{issued_on:%Y%m%d}-{lecturer_id.hex[:8].upper()}"


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


class ReportSelector(BaseSelector[ClaimModel]):
    """Read-only HR reporting queries."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def approved_claims(
        self,
        start: date | None = None,
        end: date | None = None,
        lecturer_id: UUID | None = None,
        department: str | None = None,
    ) -> list[Claim]:
        """
        Approved claims, newest manager approval first.

        ``start`` and ``end`` bound the submission date and are both
        inclusive whole days.
        """
        stmt = select(ClaimModel).where(
            ClaimModel.status == ClaimStatus.APPROVED.value
        )
        if start is not None:
            stmt = stmt.where(ClaimModel.submission_date >= _start_of(start))
        if end is not None:
            stmt = stmt.where(
                ClaimModel.submission_date < _start_of(end + timedelta(days=1))
            )
        if lecturer_id is not None:
            stmt = stmt.where(ClaimModel.lecturer_id == lecturer_id)
        if department is not None:
            stmt = stmt.join(UserModel, UserModel.id == ClaimModel.lecturer_id).where(
                UserModel.department == department
            )
        stmt = stmt.order_by(ClaimModel.manager_approval_date.desc(), ClaimModel.id)

        models = self.session.execute(stmt).unique().scalars().all()
        return [m.to_dto() for m in models]

    def lecturer_payment_summaries(self) -> list[LecturerPaymentSummary]:
        """One summary per lecturer, highest approved earnings first."""
        lecturers = self.session.execute(
            select(UserModel)
            .where(UserModel.role == UserRole.LECTURER.value)
            .order_by(UserModel.last_name, UserModel.first_name)
        ).scalars().all()

        claims_by_lecturer: dict[UUID, list[ClaimModel]] = defaultdict(list)
        for claim in self.session.execute(select(ClaimModel)).unique().scalars():
            claims_by_lecturer[claim.lecturer_id].append(claim)

        summaries = []
        for lecturer in lecturers:
            claims = claims_by_lecturer.get(lecturer.id, [])
            approved = [c for c in claims if c.status == ClaimStatus.APPROVED.value]
            summaries.append(
                LecturerPaymentSummary(
                    lecturer=lecturer.to_dto(),
                    total_claims=len(claims),
                    approved_claims=len(approved),
                    total_earnings=sum(
                        (c.hours_worked * c.hourly_rate for c in approved),
                        Decimal("0"),
                    ),
                    last_submission_date=max(
                        (c.submission_date for c in claims), default=None
                    ),
                )
            )

        # Stable sort keeps the name order among equal earnings
        summaries.sort(key=lambda s: s.total_earnings, reverse=True)
        return summaries

    def payment_invoice(self, lecturer_id: UUID, period: str) -> PaymentInvoice:
        """
        Invoice over the lecturer's approved claims for ``period``.

        Raises:
            UserNotFoundError: if the lecturer does not exist.
            InvalidClaimPeriodError: if ``period`` is not ``YYYY-MM``.
        """
        token = str(ClaimPeriod.parse(period))
        lecturer = self.session.get(UserModel, lecturer_id)
        if lecturer is None:
            raise UserNotFoundError(str(lecturer_id), UserRole.LECTURER.value)

        models = self.session.execute(
            select(ClaimModel)
            .where(
                ClaimModel.lecturer_id == lecturer_id,
                ClaimModel.period == token,
                ClaimModel.status == ClaimStatus.APPROVED.value,
            )
            .order_by(ClaimModel.submission_date)
        ).unique().scalars().all()

        issued_on = self._clock.today()
        return PaymentInvoice(
            invoice_number=invoice_number_for(lecturer_id, issued_on),
            invoice_date=issued_on,
            lecturer=lecturer.to_dto(),
            period=token,
            claims=tuple(m.to_dto() for m in models),
        )
