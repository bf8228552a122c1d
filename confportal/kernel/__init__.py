"""
Kernel Layer

Foundational components shared by every feature:
- Data models (users, submissions, version history, attendees)
- Immutable Event Log (all mutations logged in the same transaction)
- Identity Core (accounts, bearer tokens)
- Admin authorization
- Error taxonomy
"""

from confportal.kernel.models import (
    User,
    UserRole,
    VerificationStatus,
    Administrator,
    Submission,
    SubmissionStatus,
    SubmissionType,
    SubmissionVersion,
    PaymentStatus,
    Attendee,
    EventLog,
    EventType,
)

__all__ = [
    # User & Identity
    "User",
    "UserRole",
    "VerificationStatus",
    "Administrator",
    # Submissions
    "Submission",
    "SubmissionStatus",
    "SubmissionType",
    "SubmissionVersion",
    "PaymentStatus",
    # Attendees
    "Attendee",
    # Event Log
    "EventLog",
    "EventType",
]
