"""
Kernel Data Models

Core SQLAlchemy models: users, submissions with their version history,
attendee registrations and the audit log.
"""

from confportal.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from confportal.kernel.models.user import (
    User,
    UserRole,
    VerificationStatus,
    Administrator,
)
from confportal.kernel.models.submission import (
    Submission,
    SubmissionStatus,
    SubmissionType,
    SubmissionVersion,
    PaymentStatus,
    ReferenceCounter,
)
from confportal.kernel.models.attendee import Attendee, ATTENDEE_PAYMENT_TYPE
from confportal.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    # User
    "User",
    "UserRole",
    "VerificationStatus",
    "Administrator",
    # Submission
    "Submission",
    "SubmissionStatus",
    "SubmissionType",
    "SubmissionVersion",
    "PaymentStatus",
    "ReferenceCounter",
    # Attendee
    "Attendee",
    "ATTENDEE_PAYMENT_TYPE",
    # Event Log
    "EventLog",
    "EventType",
]
