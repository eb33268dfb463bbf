"""
Module: claims_kernel.models.document
Responsibility: ORM persistence for supporting-document metadata.  The file
    bytes live in an external store addressed by ``storage_key``.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Documents are soft-deleted (is_active=False), never removed, so the
      validation history of a claim stays explainable.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from claims_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from claims_kernel.domain.claim import DocumentInfo
    from claims_kernel.models.claim import ClaimModel


class SupportingDocumentModel(Base):
    """Persistent supporting-document record."""

    __tablename__ = "supporting_documents"

    __table_args__ = (
        Index("ix_supporting_documents_claim_active", "claim_id", "is_active"),
    )

    claim_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(10), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False)
    upload_date: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    claim: Mapped["ClaimModel"] = relationship(
        "ClaimModel",
        back_populates="documents",
        foreign_keys=[claim_id],
    )

    def __repr__(self) -> str:
        return (
            f"<SupportingDocument {self.id} claim={self.claim_id} "
            f"{self.file_name} active={self.is_active}>"
        )

    def to_dto(self) -> DocumentInfo:
        """Convert ORM model to frozen domain DTO."""
        from claims_kernel.domain.claim import DocumentInfo

        return DocumentInfo(
            document_id=self.id,
            claim_id=self.claim_id,
            file_name=self.file_name,
            file_type=self.file_type,
            file_size=self.file_size,
            storage_key=self.storage_key,
            upload_date=self.upload_date,
            is_active=self.is_active,
        )
