"""
Module: claims_kernel.selectors.claim_selector
Responsibility: Read-only queries over claims, users and documents.  This is
    the persistence seam the validation engine consumes (it satisfies the
    ``ClaimDataProvider`` protocol) and the source of reviewer queues.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import func, select

from claims_kernel.domain.claim import Claim, ClaimStatus, UserInfo
from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.document import SupportingDocumentModel
from claims_kernel.models.user import UserModel
from claims_kernel.selectors.base import BaseSelector


class ClaimSelector(BaseSelector[ClaimModel]):
    """Selector for claim, user and document lookups."""

    def get_claim(self, claim_id: UUID) -> Claim | None:
        """Claim with its lecturer and documents, or None."""
        model = self.session.get(ClaimModel, claim_id)
        return model.to_dto() if model is not None else None

    def get_user(self, user_id: UUID) -> UserInfo | None:
        model = self.session.get(UserModel, user_id)
        return model.to_dto() if model is not None else None

    def count_active_documents(self, claim_id: UUID) -> int:
        return self.session.execute(
            select(func.count(SupportingDocumentModel.id)).where(
                SupportingDocumentModel.claim_id == claim_id,
                SupportingDocumentModel.is_active.is_(True),
            )
        ).scalar_one()

    def has_open_claim_for_period(
        self,
        lecturer_id: UUID,
        period: str,
        exclude_claim_id: UUID | None = None,
    ) -> bool:
        """True if a non-rejected claim exists for this lecturer and period."""
        stmt = select(ClaimModel.id).where(
            ClaimModel.lecturer_id == lecturer_id,
            ClaimModel.period == period,
            ClaimModel.status != ClaimStatus.REJECTED.value,
        )
        if exclude_claim_id is not None:
            stmt = stmt.where(ClaimModel.id != exclude_claim_id)
        return self.session.execute(stmt.limit(1)).first() is not None

    def claims_in_status(self, status: ClaimStatus) -> list[Claim]:
        """All claims in ``status``, oldest submission first."""
        models = self.session.execute(
            select(ClaimModel)
            .where(ClaimModel.status == status.value)
            .order_by(ClaimModel.submission_date, ClaimModel.id)
        ).unique().scalars().all()
        return [m.to_dto() for m in models]

    def claims_for_lecturer(self, lecturer_id: UUID) -> list[Claim]:
        """A lecturer's own claims, newest submission first."""
        models = self.session.execute(
            select(ClaimModel)
            .where(ClaimModel.lecturer_id == lecturer_id)
            .order_by(ClaimModel.submission_date.desc())
        ).unique().scalars().all()
        return [m.to_dto() for m in models]
