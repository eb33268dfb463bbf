"""
Module: claims_kernel.models.claim
Responsibility: ORM persistence for lecturer claims.
Architecture position: Kernel > Models.  May import from db/base.py only
    (DTO conversion imports the domain lazily).

Invariants enforced:
    - status is limited to the ClaimStatus values by a check constraint; the
      transition rules live in domain/workflow.py and are applied only by
      WorkflowEngine and ClaimSubmissionService.
    - ``version`` is the mapper's version_id_col: every UPDATE carries
      ``WHERE version = :loaded`` so a concurrent review of the same claim
      fails with StaleDataError instead of silently overwriting.
    - total_amount is not a column; it is derived on the DTO.

Failure modes:
    - StaleDataError on flush when another transaction changed the row.
    - IntegrityError if lecturer_id does not reference a user.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claims_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from claims_kernel.domain.claim import Claim
    from claims_kernel.models.document import SupportingDocumentModel
    from claims_kernel.models.user import UserModel


class ClaimModel(Base):
    """
    Persistent lecturer claim.

    Contract:
        lecturer_id and period are set at submission.  Status, the two
        review dates and the two review notes fields change only through
        the workflow engine; Returned claims are reopened by resubmission.
    """

    __tablename__ = "claims"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'pending_manager', 'approved', "
            "'rejected', 'returned')",
            name="ck_claims_valid_status",
        ),
        # Duplicate-period lookup (lecturer + period, non-rejected)
        Index("ix_claims_lecturer_period", "lecturer_id", "period", "status"),
        # Reviewer queues, oldest first
        Index("ix_claims_status_submitted", "status", "submission_date"),
    )

    lecturer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    submission_date: Mapped[datetime] = mapped_column(nullable=False)
    coordinator_approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    manager_approval_date: Mapped[datetime | None] = mapped_column(nullable=True)
    lecturer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    coordinator_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lecturer: Mapped["UserModel"] = relationship(
        "UserModel",
        foreign_keys=[lecturer_id],
        lazy="joined",
        innerjoin=True,
    )
    documents: Mapped[list["SupportingDocumentModel"]] = relationship(
        "SupportingDocumentModel",
        back_populates="claim",
        order_by="SupportingDocumentModel.upload_date",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Claim {self.id} lecturer={self.lecturer_id} "
            f"period={self.period} status={self.status}>"
        )

    def to_dto(self) -> Claim:
        """Convert ORM model to frozen domain DTO."""
        from claims_kernel.domain.claim import Claim, ClaimStatus

        return Claim(
            claim_id=self.id,
            lecturer_id=self.lecturer_id,
            period=self.period,
            hours_worked=self.hours_worked,
            hourly_rate=self.hourly_rate,
            status=ClaimStatus(self.status),
            submission_date=self.submission_date,
            coordinator_approval_date=self.coordinator_approval_date,
            manager_approval_date=self.manager_approval_date,
            lecturer_notes=self.lecturer_notes,
            coordinator_notes=self.coordinator_notes,
            manager_notes=self.manager_notes,
            lecturer=self.lecturer.to_dto() if self.lecturer is not None else None,
            documents=tuple(d.to_dto() for d in self.documents),
        )

    @classmethod
    def from_dto(cls, dto: Claim) -> ClaimModel:
        """Create ORM model from domain DTO (new claims only)."""
        return cls(
            id=dto.claim_id,
            lecturer_id=dto.lecturer_id,
            period=dto.period,
            hours_worked=dto.hours_worked,
            hourly_rate=dto.hourly_rate,
            status=dto.status.value,
            submission_date=dto.submission_date,
            coordinator_approval_date=dto.coordinator_approval_date,
            manager_approval_date=dto.manager_approval_date,
            lecturer_notes=dto.lecturer_notes,
            coordinator_notes=dto.coordinator_notes,
            manager_notes=dto.manager_notes,
        )
