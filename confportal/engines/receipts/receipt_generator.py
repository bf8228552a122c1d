"""
Receipt Generator - authorization gate and receipt number assurance.

A receipt exists only for a paid record. The receipt number is normally
written by the success callback; if it is missing it is generated here
with a compare-and-set on ``receipt_number IS NULL`` so it is still set at
most once.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.config import Settings
from confportal.engines.receipts.numbering import (
    attendee_receipt_number,
    submission_receipt_number,
)
from confportal.engines.receipts.pdf_renderer import (
    ReceiptDocument,
    format_amount,
    format_receipt_date,
    render_receipt_pdf,
)
from confportal.kernel.errors import AuthorizationError, NotFoundError
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.identity_service import role_value
from confportal.kernel.models.attendee import Attendee
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.submission import PaymentStatus, Submission, SubmissionType
from confportal.kernel.models.user import User
from confportal.logging_config import get_logger

logger = get_logger(__name__)

NOT_PAID_MESSAGE = "Receipt is available only after successful payment"


@dataclass
class RenderedReceipt:
    receipt_number: str
    filename: str
    content: bytes


@dataclass
class ReceiptStatus:
    available: bool
    receipt_number: Optional[str] = None
    txn_id: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None


def format_category(role) -> str:
    if not role:
        return "N/A"
    return role_value(role).capitalize()


class ReceiptGenerator:
    """Serves receipts for paid full papers and attendee registrations."""

    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.event_store = EventStore(session)

    # ------------------------------------------------------------------
    # Full paper
    # ------------------------------------------------------------------

    async def for_user(self, user_id: uuid.UUID) -> RenderedReceipt:
        """
        Receipt for the caller's paid full paper.

        Raises:
            NotFoundError: unknown user
            AuthorizationError: no paid full paper
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        submission = await self._paid_full_paper(user_id)
        if submission is None:
            raise AuthorizationError(NOT_PAID_MESSAGE)

        receipt_number = await self._ensure_submission_receipt(submission)
        document = ReceiptDocument(
            receipt_number=receipt_number,
            event_name=self.settings.event_name,
            support_email=self.settings.support_email,
            rows=[
                ("Transaction ID", submission.payment_txn_id or "N/A"),
                ("Date & Time", format_receipt_date(submission.payment_date, self.settings.receipt_timezone)),
                ("Full Name", user.full_name or "N/A"),
                ("Email Address", user.email or "N/A"),
                ("Category", format_category(user.role)),
                ("Participation Type", "Offline"),
                ("Amount Paid", format_amount(submission.payment_amount)),
            ],
        )
        return RenderedReceipt(
            receipt_number=receipt_number,
            filename=f"Receipt_{receipt_number}.pdf",
            content=render_receipt_pdf(document),
        )

    async def status_for_user(self, user_id: uuid.UUID) -> ReceiptStatus:
        """Whether a receipt can be fetched, without rendering it."""
        submission = await self._paid_full_paper(user_id)
        if submission is None:
            return ReceiptStatus(available=False)
        return ReceiptStatus(
            available=True,
            receipt_number=submission.receipt_number
            or submission_receipt_number(self.settings, submission.payment_txn_id),
            txn_id=submission.payment_txn_id,
            amount=submission.payment_amount,
            payment_date=submission.payment_date,
        )

    async def _paid_full_paper(self, user_id: uuid.UUID) -> Optional[Submission]:
        result = await self.session.execute(
            select(Submission)
            .where(
                Submission.owner_id == user_id,
                Submission.submission_type == SubmissionType.FULLPAPER.value,
                Submission.payment_status == PaymentStatus.PAID.value,
            )
            .order_by(Submission.payment_date.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _ensure_submission_receipt(self, submission: Submission) -> str:
        if submission.receipt_number:
            return submission.receipt_number
        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.id == submission.id,
                Submission.receipt_number.is_(None),
            )
            .values(
                receipt_number=submission_receipt_number(self.settings, submission.payment_txn_id),
                receipt_generated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(submission)
        if result.rowcount == 1:
            await self.event_store.log(
                event_type=EventType.RECEIPT_ISSUED,
                entity_type="submission",
                entity_id=submission.id,
                payload={"receipt_number": submission.receipt_number},
            )
            logger.info(
                "Receipt number assigned on first fetch",
                extra={"submission_id": str(submission.id), "receipt_number": submission.receipt_number},
            )
        return submission.receipt_number

    # ------------------------------------------------------------------
    # Attendee
    # ------------------------------------------------------------------

    async def for_attendee(self, txn_id: str) -> RenderedReceipt:
        """
        Receipt for an attendee registration.

        Raises:
            NotFoundError: unknown transaction id
            AuthorizationError: registration not paid
        """
        result = await self.session.execute(
            select(Attendee).where(Attendee.txn_id == txn_id)
        )
        attendee = result.scalar_one_or_none()
        if attendee is None:
            raise NotFoundError("Registration not found")
        if attendee.payment_status != PaymentStatus.PAID:
            raise AuthorizationError(NOT_PAID_MESSAGE)

        receipt_number = await self._ensure_attendee_receipt(attendee)
        document = ReceiptDocument(
            receipt_number=receipt_number,
            event_name=self.settings.event_name,
            support_email=self.settings.support_email,
            title="Attendee Registration Receipt",
            rows=[
                ("Receipt Number", receipt_number),
                ("Transaction ID", attendee.txn_id),
                ("Date & Time", format_receipt_date(attendee.payment_date, self.settings.receipt_timezone)),
                ("Full Name", attendee.name or "N/A"),
                ("Email Address", attendee.email or "N/A"),
                ("Organization", attendee.organization or "N/A"),
                ("Registration Type", "Attendee"),
                ("Amount Paid", format_amount(attendee.payment_amount or attendee.amount)),
            ],
            note="Attendee Registration Fee",
        )
        return RenderedReceipt(
            receipt_number=receipt_number,
            filename=f"Attendee_Receipt_{receipt_number}.pdf",
            content=render_receipt_pdf(document),
        )

    async def _ensure_attendee_receipt(self, attendee: Attendee) -> str:
        if attendee.receipt_number:
            return attendee.receipt_number
        result = await self.session.execute(
            update(Attendee)
            .where(
                Attendee.id == attendee.id,
                Attendee.receipt_number.is_(None),
            )
            .values(receipt_number=attendee_receipt_number(self.settings, attendee.txn_id))
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(attendee)
        if result.rowcount == 1:
            await self.event_store.log(
                event_type=EventType.RECEIPT_ISSUED,
                entity_type="attendee",
                entity_id=attendee.id,
                payload={"receipt_number": attendee.receipt_number},
            )
        return attendee.receipt_number
