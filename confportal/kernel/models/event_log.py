"""
Immutable event log for audit trail.

Every state change is logged here in the same transaction that applies it.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from confportal.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """All event types for the audit log."""

    # User events
    USER_REGISTERED = "user.registered"
    USER_LOGGED_IN = "user.logged_in"
    USER_ROLE_CHANGED = "user.role_changed"

    # Submission events
    SUBMISSION_CREATED = "submission.created"
    SUBMISSION_STATUS_CHANGED = "submission.status_changed"
    SUBMISSION_REVISED = "submission.revised"

    # Payment events
    PAYMENT_INITIATED = "payment.initiated"
    PAYMENT_SUCCEEDED = "payment.succeeded"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_SIGNATURE_REJECTED = "payment.signature_rejected"
    ATTENDEE_PAYMENT_INITIATED = "attendee.payment_initiated"
    ATTENDEE_PAYMENT_SUCCEEDED = "attendee.payment_succeeded"
    ATTENDEE_PAYMENT_FAILED = "attendee.payment_failed"
    ATTENDEE_DUPLICATE_PAYMENT = "attendee.duplicate_payment"
    RECEIPT_ISSUED = "receipt.issued"

    # Verification events
    DOCUMENT_UPLOADED = "verification.document_uploaded"
    VERIFICATION_DECIDED = "verification.decided"

    # Admin events
    ADMIN_GRANTED = "admin.granted"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor; gateway callbacks have none
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )
    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
