"""
Attendee registration model (fixed-fee registration without a paper).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from confportal.kernel.models.base import Base, TimestampMixin, generate_uuid
from confportal.kernel.models.submission import PaymentStatus

ATTENDEE_PAYMENT_TYPE = "attendee_registration"


class Attendee(Base, TimestampMixin):
    """
    One registration attempt, keyed by its gateway transaction id.

    Several attempts may exist per email; at most one of them is paid.
    """

    __tablename__ = "attendees"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Always lower-cased
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(10), nullable=False)
    organization: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    txn_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    payment_type: Mapped[str] = mapped_column(
        String(50),
        default=ATTENDEE_PAYMENT_TYPE,
        nullable=False,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(50),
        default=PaymentStatus.PENDING,
        nullable=False,
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
    receipt_number: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)

    __table_args__ = (
        Index("ix_attendees_email_status", "email", "payment_status"),
    )

    def __repr__(self) -> str:
        return f"<Attendee {self.email} {self.txn_id} {self.payment_status}>"
