"""
Module: claims_kernel.models.user
Responsibility: ORM persistence for users (lecturers, reviewers, HR).
Architecture position: Kernel > Models.  May import from db/base.py only
    (DTO conversion imports the domain lazily).

Audit relevance:
    ``default_hourly_rate`` is the advisory baseline the validation engine
    compares claimed rates against.  ``role`` decides which review stage a
    user may act on.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from claims_kernel.db.base import Base

if TYPE_CHECKING:
    from claims_kernel.domain.claim import UserInfo


class UserModel(Base):
    """
    Persistent user record.

    Guarantees:
        - username and email are unique.
        - role is one of the values of ``UserRole``.
    """

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("email", name="uq_users_email"),
        CheckConstraint(
            "role IN ('lecturer', 'programme_coordinator', "
            "'academic_manager', 'hr')",
            name="ck_users_valid_role",
        ),
        Index("idx_users_role", "role"),
    )

    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    default_hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"

    def to_dto(self) -> UserInfo:
        """Convert ORM model to frozen domain DTO."""
        from claims_kernel.domain.claim import UserInfo, UserRole

        return UserInfo(
            user_id=self.id,
            username=self.username,
            first_name=self.first_name,
            last_name=self.last_name,
            role=UserRole(self.role),
            email=self.email,
            department=self.department,
            default_hourly_rate=self.default_hourly_rate,
            is_active=self.is_active,
        )
