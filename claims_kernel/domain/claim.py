"""
Claim domain types (``claims_kernel.domain.claim``).

Responsibility
--------------
Pure value objects for lecturer claims: claim status and user role
enumerations, the ``YYYY-MM`` claim period token, and the frozen DTOs that
the validation and workflow engines consume.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* ``Claim.total_amount`` is always derived as hours_worked x hourly_rate and
  is never stored.
* ``ClaimPeriod`` only represents real calendar months (month 1..12).
"""

from __future__ import annotations

import re
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from claims_kernel.exceptions import InvalidClaimPeriodError


# =========================================================================
# Enumerations
# =========================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle states."""

    PENDING = "pending"
    PENDING_MANAGER = "pending_manager"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


class UserRole(str, Enum):
    """Roles a user can hold.  Exactly one per user."""

    LECTURER = "lecturer"
    PROGRAMME_COORDINATOR = "programme_coordinator"
    ACADEMIC_MANAGER = "academic_manager"
    HR = "hr"


_STATUS_DISPLAY_TEXT: dict[ClaimStatus, str] = {
    ClaimStatus.PENDING: "Pending Coordinator Review",
    ClaimStatus.PENDING_MANAGER: "Pending Manager Approval",
    ClaimStatus.APPROVED: "Approved",
    ClaimStatus.REJECTED: "Rejected",
    ClaimStatus.RETURNED: "Returned for Revision",
}

_STATUS_PROGRESS: dict[ClaimStatus, int] = {
    ClaimStatus.PENDING: 33,
    ClaimStatus.PENDING_MANAGER: 66,
    ClaimStatus.APPROVED: 100,
    ClaimStatus.REJECTED: 100,
    ClaimStatus.RETURNED: 20,
}


# =========================================================================
# Claim period
# =========================================================================

_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class ClaimPeriod:
    """A calendar month in which claimed hours were worked."""

    year: int
    month: int

    @classmethod
    def parse(cls, token: str) -> ClaimPeriod:
        """Parse a ``YYYY-MM`` token.

        Raises:
            InvalidClaimPeriodError: if the token is malformed or the month
                is out of range.
        """
        match = _PERIOD_PATTERN.match(token or "")
        if match is None:
            raise InvalidClaimPeriodError(token)
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12 or year < 1:
            raise InvalidClaimPeriodError(token)
        return cls(year=year, month=month)

    @classmethod
    def containing(cls, day: date) -> ClaimPeriod:
        """The period that contains ``day``."""
        return cls(year=day.year, month=day.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def add_months(day: date, months: int) -> date:
    """Shift ``day`` by whole calendar months, clamping to month end."""
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


# =========================================================================
# DTOs
# =========================================================================


@dataclass(frozen=True)
class UserInfo:
    """Read-only view of a user record."""

    user_id: UUID
    username: str
    first_name: str
    last_name: str
    role: UserRole
    email: str = ""
    department: str | None = None
    default_hourly_rate: Decimal | None = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class DocumentInfo:
    """Metadata of a supporting document.  The bytes live elsewhere."""

    document_id: UUID
    claim_id: UUID
    file_name: str
    file_type: str
    file_size: int
    storage_key: str
    upload_date: datetime | None = None
    is_active: bool = True


@dataclass(frozen=True)
class Claim:
    """
    Immutable snapshot of a lecturer claim.

    ``period`` is kept as the raw token so that a malformed value stored by
    an older submission flow can still be loaded and reported on.
    """

    claim_id: UUID
    lecturer_id: UUID
    period: str
    hours_worked: Decimal
    hourly_rate: Decimal
    status: ClaimStatus = ClaimStatus.PENDING
    submission_date: datetime | None = None
    coordinator_approval_date: datetime | None = None
    manager_approval_date: datetime | None = None
    lecturer_notes: str | None = None
    coordinator_notes: str | None = None
    manager_notes: str | None = None
    lecturer: UserInfo | None = None
    documents: tuple[DocumentInfo, ...] = field(default=())

    @property
    def total_amount(self) -> Decimal:
        return self.hours_worked * self.hourly_rate

    @property
    def status_display_text(self) -> str:
        return _STATUS_DISPLAY_TEXT[self.status]

    @property
    def progress_percentage(self) -> int:
        return _STATUS_PROGRESS[self.status]

    @property
    def active_documents(self) -> tuple[DocumentInfo, ...]:
        return tuple(d for d in self.documents if d.is_active)


@dataclass(frozen=True)
class DocumentRules:
    """Accepted supporting-document types and size ceiling."""

    max_file_size: int = 5 * 1024 * 1024
    allowed_extensions: frozenset[str] = frozenset({
        ".pdf", ".doc", ".docx", ".xlsx", ".xls", ".jpg", ".jpeg", ".png",
    })
