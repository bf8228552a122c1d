"""
Submission models: the paper under review, its archived versions, and the
counter that hands out reference numbers.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from confportal.kernel.errors import ValidationError
from confportal.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow

if TYPE_CHECKING:
    from confportal.kernel.models.user import User


class SubmissionStatus(str, Enum):
    """Review status of a submission. Exhaustive: nothing else is valid."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    ACCEPTED_WITH_REVISION = "accepted_with_revision"
    PENDING_REVIEW = "pending_review"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: str) -> "SubmissionStatus":
        """
        Interpret a stored or requested status.

        Legacy values such as ``submitted`` are never mapped onto a current
        status; they fail loudly so the record can be fixed by hand.
        """
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unrecognized submission status: {value!r}")


class SubmissionType(str, Enum):
    ABSTRACT = "abstract"
    FULLPAPER = "fullpaper"


class PaymentStatus(str, Enum):
    """Payment sub-state shared by submissions and attendees."""
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Submission(Base, TimestampMixin):
    """
    A paper submitted for review.

    Mutated only through compare-and-set updates issued by the state
    machine, the revision archiver and the payment components.
    """

    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reference_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    # [{"name": ..., "email": ..., "affiliation": ...}]
    authors: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    submission_type: Mapped[SubmissionType] = mapped_column(
        String(50),
        nullable=False,
    )

    # Stored as plain text so that legacy values survive a load
    status: Mapped[str] = mapped_column(
        String(50),
        default=SubmissionStatus.PENDING,
        nullable=False,
        index=True,
    )
    current_version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )
    pdf_url: Mapped[str] = mapped_column(Text, nullable=False)
    last_revision_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Review of the current version
    review_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(50),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )
    payment_txn_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        unique=True,
        nullable=True,
    )
    payment_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
    )
    payment_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    payment_gateway_status: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    payment_initiated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    payment_failed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    payment_frontend_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    receipt_number: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
    )
    receipt_generated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="submissions",
    )
    versions: Mapped[List["SubmissionVersion"]] = relationship(
        "SubmissionVersion",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionVersion.version.asc()",
    )

    __table_args__ = (
        Index("ix_submissions_owner_type", "owner_id", "submission_type"),
    )

    def __repr__(self) -> str:
        return f"<Submission {self.reference_number} {self.status}>"


class SubmissionVersion(Base):
    """Immutable snapshot of a superseded submission version."""

    __tablename__ = "submission_versions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    admin_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    submission: Mapped["Submission"] = relationship(
        "Submission",
        back_populates="versions",
    )

    __table_args__ = (
        Index(
            "ix_submission_versions_submission_version",
            "submission_id",
            "version",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return f"<SubmissionVersion {self.submission_id} v{self.version}>"


class ReferenceCounter(Base):
    """Monotonic counter backing human-readable reference numbers."""

    __tablename__ = "reference_counters"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    last_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
