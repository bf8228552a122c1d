"""
Verification Engine - identity document upload and admin review.
"""

from confportal.engines.verification.document_verification import (
    DocumentKind,
    ReviewQueueEntry,
    VerificationService,
)

__all__ = [
    "DocumentKind",
    "ReviewQueueEntry",
    "VerificationService",
]
