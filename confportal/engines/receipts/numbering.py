"""
Receipt numbers. Derived from the transaction id so they are stable and
need no extra counter; generated once and never changed.
"""

from confportal.config import Settings


def submission_receipt_number(settings: Settings, txn_id: str) -> str:
    """``EVT-2026-<txnid>``"""
    return f"{settings.receipt_prefix}-{txn_id}"


def attendee_receipt_number(settings: Settings, txn_id: str) -> str:
    """``EVT-ATT-2026-<txnid>``, unique because the txn id is."""
    return f"{settings.attendee_receipt_prefix}-{txn_id}"
