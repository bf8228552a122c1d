"""
Payment Session Manager - fee calculation and payment initiation.

The fee is always decided here from configuration and the payer's role;
nothing the client sends can change it. A pending record keyed by the new
transaction id is persisted before the payer is redirected, so the callback
always has something to update.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.config import Settings
from confportal.engines.payments.gateway import PaymentGateway
from confportal.engines.payments.signature import (
    PaymentFields,
    generate_txn_id,
    payment_hash,
)
from confportal.kernel.errors import ConflictError, NotFoundError, ValidationError
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.identity_service import role_value
from confportal.kernel.models.attendee import ATTENDEE_PAYMENT_TYPE, Attendee
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.submission import (
    PaymentStatus,
    Submission,
    SubmissionStatus,
    SubmissionType,
)
from confportal.kernel.models.user import User, UserRole
from confportal.logging_config import get_logger

logger = get_logger(__name__)

ATTENDEE_PRODUCT_INFO = "Attendee Registration Fee"
# Used when the payer has no phone on file; the gateway requires one
PLACEHOLDER_PHONE = "9999999999"


@dataclass
class PaymentInitiation:
    """What the client needs to send the payer to the gateway."""
    payment_url: str
    access_key: str
    txn_id: str
    amount: Decimal
    role: Optional[str] = None


@dataclass
class PaymentStatusView:
    has_accepted_paper: bool
    payment_status: Optional[str] = None
    amount: Optional[Decimal] = None
    txn_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    receipt_number: Optional[str] = None


@dataclass
class AttendeeStatusView:
    registered: bool
    payment_status: Optional[str] = None
    name: Optional[str] = None
    txn_id: Optional[str] = None
    receipt_number: Optional[str] = None
    payment_date: Optional[datetime] = None


def format_amount(amount: Decimal) -> str:
    """Gateway amount format, always two decimal places."""
    return f"{amount:.2f}"


def phone_digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


class PaymentSessionManager:
    """Builds signed gateway requests and records pending payments."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        gateway: PaymentGateway,
    ):
        self.session = session
        self.settings = settings
        self.gateway = gateway
        self.event_store = EventStore(session)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def fee_for_role(self, role: Optional[str]) -> Tuple[Decimal, str]:
        """Return (amount, product info) for a full-paper author's role."""
        if role == UserRole.STUDENT:
            return self.settings.fee_student, "Conference Fee - Student"
        if role == UserRole.SCHOLAR:
            return self.settings.fee_scholar, "Conference Fee - Scholar"
        raise ValidationError("A student or scholar role is required to pay the conference fee")

    def resolve_frontend_url(self, suggested: Optional[str]) -> str:
        """Use the client's return URL only when it is on the allow-list."""
        if suggested:
            candidate = suggested.rstrip("/")
            allowed = {u.rstrip("/") for u in self.settings.allowed_frontend_urls}
            if candidate in allowed:
                return candidate
            logger.warning(
                "Ignoring frontend URL not on the allow-list",
                extra={"frontend_url": suggested},
            )
        return self.settings.frontend_url.rstrip("/")

    def callback_urls(self, path: str) -> Dict[str, str]:
        base = f"{self.settings.backend_url.rstrip('/')}{self.settings.api_v1_prefix}{path}"
        return {"surl": f"{base}/callback/success", "furl": f"{base}/callback/failure"}

    def _signed_form(self, fields: PaymentFields, phone: str, path: str) -> Dict[str, str]:
        key = self.settings.easebuzz_merchant_key
        form = {
            "key": key,
            "txnid": fields.txnid,
            "amount": fields.amount,
            "productinfo": fields.productinfo,
            "firstname": fields.firstname,
            "email": fields.email,
            "phone": phone,
            "hash": payment_hash(key, self.settings.easebuzz_merchant_salt, fields),
        }
        form.update(self.callback_urls(path))
        return form

    # ------------------------------------------------------------------
    # Full paper
    # ------------------------------------------------------------------

    async def initiate_full_paper(
        self,
        user_id: uuid.UUID,
        frontend_url: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PaymentInitiation:
        """
        Start payment of the conference fee for the caller's accepted full paper.

        Raises:
            NotFoundError: unknown user
            ConflictError: no accepted full paper, or already paid
            ValidationError: the user has no student/scholar role
            GatewayError: initiation rejected by the gateway
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        submission = await self._accepted_full_paper(user_id, any_status=True)
        if submission is not None and submission.payment_status == PaymentStatus.PAID:
            raise ConflictError("Payment already completed")
        submission = await self._accepted_full_paper(user_id)
        if submission is None:
            raise ConflictError("Full paper must be accepted before payment")

        amount, product_info = self.fee_for_role(user.role)
        return_url = self.resolve_frontend_url(frontend_url)

        fields = PaymentFields(
            txnid=generate_txn_id(),
            amount=format_amount(amount),
            productinfo=product_info,
            firstname=user.full_name,
            email=user.email,
        )
        phone = phone_digits(user.phone)[-10:] or PLACEHOLDER_PHONE
        gateway_session = await self.gateway.initiate(
            self._signed_form(fields, phone, "/payments")
        )

        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.id == submission.id,
                Submission.status == SubmissionStatus.ACCEPTED.value,
                Submission.payment_status != PaymentStatus.PAID.value,
            )
            .values(
                payment_status=PaymentStatus.PENDING.value,
                payment_txn_id=fields.txnid,
                payment_amount=amount,
                payment_initiated_at=datetime.now(timezone.utc),
                payment_frontend_url=return_url,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Payment already completed")

        await self.event_store.log(
            event_type=EventType.PAYMENT_INITIATED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=user_id,
            payload={"txn_id": fields.txnid, "amount": amount, "role": role_value(user.role)},
            ip_address=ip_address,
        )
        logger.info(
            "Payment initiated",
            extra={"txn_id": fields.txnid, "submission_id": str(submission.id), "amount": fields.amount},
        )

        return PaymentInitiation(
            payment_url=gateway_session.payment_url,
            access_key=gateway_session.access_key,
            txn_id=fields.txnid,
            amount=amount,
            role=role_value(user.role),
        )

    async def payment_status(self, user_id: uuid.UUID) -> PaymentStatusView:
        submission = await self._accepted_full_paper(user_id, any_status=True)
        if submission is None:
            return PaymentStatusView(has_accepted_paper=False)
        return PaymentStatusView(
            has_accepted_paper=True,
            payment_status=submission.payment_status,
            amount=submission.payment_amount,
            txn_id=submission.payment_txn_id,
            payment_date=submission.payment_date,
            receipt_number=submission.receipt_number,
        )

    async def _accepted_full_paper(
        self,
        user_id: uuid.UUID,
        any_status: bool = False,
    ) -> Optional[Submission]:
        """
        The caller's accepted full paper.

        With ``any_status`` a paid paper is preferred, so that a paid record
        is found even if the author also has an unpaid one.
        """
        query = select(Submission).where(
            Submission.owner_id == user_id,
            Submission.submission_type == SubmissionType.FULLPAPER.value,
            Submission.status == SubmissionStatus.ACCEPTED.value,
        )
        result = await self.session.execute(query.order_by(Submission.created_at.asc()))
        papers = list(result.scalars().all())
        if not papers:
            return None
        if any_status:
            for paper in papers:
                if paper.payment_status == PaymentStatus.PAID:
                    return paper
        return papers[0]

    # ------------------------------------------------------------------
    # Attendee
    # ------------------------------------------------------------------

    async def initiate_attendee(
        self,
        name: str,
        email: str,
        phone: str,
        organization: Optional[str] = None,
        frontend_url: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> PaymentInitiation:
        """
        Start payment of the fixed attendee fee.

        Raises:
            ValidationError: missing name, malformed email or phone
            ConflictError: the email already has a paid registration
            GatewayError: initiation rejected by the gateway
        """
        clean_name = (name or "").strip()
        clean_email = (email or "").strip().lower()
        digits = phone_digits(phone)
        if not clean_name:
            raise ValidationError("Full name is required")
        try:
            validate_email(clean_email, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError(f"Invalid email format: {e}") from e
        if len(digits) < 10:
            raise ValidationError("Invalid phone number")

        existing = await self.paid_attendee(clean_email)
        if existing is not None:
            raise ConflictError("This email is already registered as an attendee")

        amount = self.settings.fee_attendee
        return_url = self.resolve_frontend_url(frontend_url)
        fields = PaymentFields(
            txnid=generate_txn_id(),
            amount=format_amount(amount),
            productinfo=ATTENDEE_PRODUCT_INFO,
            firstname=clean_name,
            email=clean_email,
        )
        clean_phone = digits[-10:]
        gateway_session = await self.gateway.initiate(
            self._signed_form(fields, clean_phone, "/attendees/payments")
        )

        attendee = Attendee(
            name=clean_name,
            email=clean_email,
            phone=clean_phone,
            organization=(organization or "").strip() or None,
            amount=amount,
            txn_id=fields.txnid,
            payment_type=ATTENDEE_PAYMENT_TYPE,
            payment_status=PaymentStatus.PENDING.value,
            payment_initiated_at=datetime.now(timezone.utc),
            payment_frontend_url=return_url,
        )
        self.session.add(attendee)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.ATTENDEE_PAYMENT_INITIATED,
            entity_type="attendee",
            entity_id=attendee.id,
            payload={"txn_id": fields.txnid, "email": clean_email, "amount": amount},
            ip_address=ip_address,
        )
        logger.info(
            "Attendee payment initiated",
            extra={"txn_id": fields.txnid, "email": clean_email},
        )

        return PaymentInitiation(
            payment_url=gateway_session.payment_url,
            access_key=gateway_session.access_key,
            txn_id=fields.txnid,
            amount=amount,
        )

    async def paid_attendee(self, email: str) -> Optional[Attendee]:
        result = await self.session.execute(
            select(Attendee)
            .where(
                Attendee.email == email.strip().lower(),
                Attendee.payment_status == PaymentStatus.PAID.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def attendee_status(self, email: str) -> AttendeeStatusView:
        """The paid registration for an email, else the latest attempt."""
        clean_email = (email or "").strip().lower()
        attendee = await self.paid_attendee(clean_email)
        if attendee is None:
            result = await self.session.execute(
                select(Attendee)
                .where(Attendee.email == clean_email)
                .order_by(Attendee.created_at.desc())
                .limit(1)
            )
            attendee = result.scalar_one_or_none()
        if attendee is None:
            return AttendeeStatusView(registered=False)
        return AttendeeStatusView(
            registered=attendee.payment_status == PaymentStatus.PAID,
            payment_status=attendee.payment_status,
            name=attendee.name,
            txn_id=attendee.txn_id,
            receipt_number=attendee.receipt_number,
            payment_date=attendee.payment_date,
        )
