"""
User model for identity management and document verification.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, func, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from confportal.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow

if TYPE_CHECKING:
    from confportal.kernel.models.submission import Submission


class UserRole(str, Enum):
    """User roles. Student and scholar decide the registration fee."""
    STUDENT = "student"
    SCHOLAR = "scholar"
    ADMIN = "admin"


class VerificationStatus(str, Enum):
    """Review state of a user's identity documents."""
    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    institution: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Nullable: a user without a fee category cannot initiate payment
    role: Mapped[Optional[UserRole]] = mapped_column(
        String(50),
        default=UserRole.STUDENT,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Identity document verification
    verification_status: Mapped[VerificationStatus] = mapped_column(
        String(50),
        default=VerificationStatus.NOT_SUBMITTED,
        nullable=False,
    )
    id_card_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_receipt_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verification_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    verified_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )
    last_document_upload_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    submissions: Mapped[List["Submission"]] = relationship(
        "Submission",
        back_populates="owner",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Administrator(Base):
    """Registry of users holding administrative privilege."""

    __tablename__ = "administrators"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    granted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
