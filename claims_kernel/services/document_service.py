"""
claims_kernel.services.document_service -- Supporting-document metadata.

Responsibility:
    Records, lists and soft-deletes the supporting documents attached to a
    claim.  File bytes are kept in an external store; this service only
    tracks ``storage_key`` and the metadata the validation rules count.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Documents are attached only while a claim is Pending or Returned.
    - The extension and size of every file are checked against the active
      ``DocumentRules`` before anything is written.
    - Deactivation is a soft delete; rows are never removed.
"""

from __future__ import annotations

from pathlib import PurePath
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from claims_kernel.domain.claim import ClaimStatus, DocumentInfo, DocumentRules
from claims_kernel.domain.clock import Clock, SystemClock
from claims_kernel.exceptions import (
    ClaimNotEditableError,
    ClaimNotFoundError,
    DocumentNotFoundError,
    DocumentRejectedError,
)
from claims_kernel.logging_config import get_logger
from claims_kernel.models.claim import ClaimModel
from claims_kernel.models.document import SupportingDocumentModel
from claims_kernel.services.base import BaseService

logger = get_logger("services.documents")

_ATTACHABLE_STATUSES = frozenset({ClaimStatus.PENDING.value, ClaimStatus.RETURNED.value})


class DocumentService(BaseService[SupportingDocumentModel]):
    """Supporting-document bookkeeping for claims."""

    def __init__(
        self,
        session: Session,
        rules: DocumentRules | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session)
        self._rules = rules or DocumentRules()
        self._clock = clock or SystemClock()

    def attach_document(
        self,
        claim_id: UUID,
        file_name: str,
        file_size: int,
        storage_key: str,
    ) -> DocumentInfo:
        """
        Record a document already written to the external store.

        Raises:
            ClaimNotFoundError: if the claim does not exist.
            ClaimNotEditableError: if the claim is under or past review.
            DocumentRejectedError: if type or size violate the rules.
        """
        claim = self.session.get(ClaimModel, claim_id)
        if claim is None:
            raise ClaimNotFoundError(str(claim_id))
        if claim.status not in _ATTACHABLE_STATUSES:
            raise ClaimNotEditableError(
                str(claim_id), claim.status, "documents can only be added before review"
            )

        extension = self.check_file(file_name, file_size)

        model = SupportingDocumentModel(
            file_name=file_name,
            file_type=extension,
            file_size=file_size,
            storage_key=storage_key,
            upload_date=self._clock.now(),
            is_active=True,
        )
        claim.documents.append(model)
        self.session.flush()

        logger.info(
            "document_attached",
            extra={
                "claim_id": str(claim_id),
                "document_id": str(model.id),
                "file_type": extension,
                "file_size": file_size,
            },
        )
        return model.to_dto()

    def check_file(self, file_name: str, file_size: int) -> str:
        """Return the normalized extension, or raise DocumentRejectedError."""
        extension = PurePath(file_name).suffix.lower()
        if extension not in self._rules.allowed_extensions:
            raise DocumentRejectedError(
                file_name,
                "file type not allowed; accepted: "
                + ", ".join(sorted(self._rules.allowed_extensions)),
            )
        if file_size <= 0:
            raise DocumentRejectedError(file_name, "file is empty")
        if file_size > self._rules.max_file_size:
            raise DocumentRejectedError(
                file_name,
                f"file size {file_size} exceeds limit of {self._rules.max_file_size} bytes",
            )
        return extension

    def deactivate_document(self, document_id: UUID) -> DocumentInfo:
        """Soft-delete a document.  Deactivating twice is a no-op."""
        model = self.session.get(SupportingDocumentModel, document_id)
        if model is None:
            raise DocumentNotFoundError(str(document_id))
        if model.is_active:
            model.is_active = False
            self.session.flush()
            logger.info(
                "document_deactivated",
                extra={"claim_id": str(model.claim_id), "document_id": str(document_id)},
            )
        return model.to_dto()

    def list_active_documents(self, claim_id: UUID) -> list[DocumentInfo]:
        """Active documents of a claim, oldest upload first."""
        models = self.session.execute(
            select(SupportingDocumentModel)
            .where(
                SupportingDocumentModel.claim_id == claim_id,
                SupportingDocumentModel.is_active.is_(True),
            )
            .order_by(SupportingDocumentModel.upload_date)
        ).scalars().all()
        return [m.to_dto() for m in models]
