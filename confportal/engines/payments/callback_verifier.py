"""
Payment Callback Verifier.

Gateway callbacks are untrusted until their reverse hash checks out. A
verified success moves the record ``pending -> paid`` exactly once: the
idempotency guard is part of the same UPDATE as the status change, so a
retried or duplicated delivery finds nothing to update. The gateway only
ever gets a redirect back; outcomes are reported as a status and reason.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Union
from urllib.parse import urlencode

from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from confportal.config import Settings
from confportal.engines.payments.signature import (
    PaymentFields,
    reverse_hash,
    signatures_match,
)
from confportal.engines.receipts.numbering import (
    attendee_receipt_number,
    submission_receipt_number,
)
from confportal.kernel.errors import IntegrityViolation
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.models.attendee import Attendee
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.submission import PaymentStatus, Submission
from confportal.logging_config import get_logger

logger = get_logger(__name__)

GATEWAY_SUCCESS = "success"

# Redirect reasons
HASH_MISMATCH = "hash_mismatch"
AMOUNT_MISMATCH = "amount_mismatch"
UNKNOWN_TRANSACTION = "unknown_transaction"
PAYMENT_FAILED = "payment_failed"
DUPLICATE_REGISTRATION = "duplicate_registration"
INVALID_STATE = "invalid_state"
SERVER_ERROR = "server_error"

PaymentRecord = Union[Submission, Attendee]


@dataclass(frozen=True)
class CallbackPayload:
    """Form fields posted by the gateway."""
    txnid: str
    amount: str
    productinfo: str
    firstname: str
    email: str
    status: str
    hash: str

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "CallbackPayload":
        def field(name: str) -> str:
            value = form.get(name)
            return str(value) if value is not None else ""

        return cls(
            txnid=field("txnid"),
            amount=field("amount"),
            productinfo=field("productinfo"),
            firstname=field("firstname"),
            email=field("email"),
            status=field("status"),
            hash=field("hash"),
        )

    @property
    def fields(self) -> PaymentFields:
        return PaymentFields(
            txnid=self.txnid,
            amount=self.amount,
            productinfo=self.productinfo,
            firstname=self.firstname,
            email=self.email,
        )


@dataclass
class CallbackOutcome:
    """Where the payer's browser is sent after a callback."""
    succeeded: bool
    frontend_url: str
    txn_id: Optional[str] = None
    amount: Optional[str] = None
    reason: Optional[str] = None
    attendee: bool = False

    @property
    def redirect_url(self) -> str:
        params = {"status": "success" if self.succeeded else "failed"}
        if self.reason:
            params["reason"] = self.reason
        if self.txn_id:
            params["txnid"] = self.txn_id
        if self.amount and self.succeeded:
            params["amount"] = self.amount
        if self.attendee:
            params["type"] = "attendee"
        return f"{self.frontend_url.rstrip('/')}/#/payment-result?{urlencode(params)}"


class PaymentCallbackVerifier:
    """Verifies gateway callbacks and applies their outcome once."""

    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings
        self.event_store = EventStore(session)

    def verify_signature(self, payload: CallbackPayload) -> None:
        """Raise IntegrityViolation unless the reverse hash matches."""
        expected = reverse_hash(
            self.settings.easebuzz_merchant_key,
            self.settings.easebuzz_merchant_salt,
            payload.status,
            payload.fields,
        )
        if not signatures_match(expected, payload.hash):
            raise IntegrityViolation(HASH_MISMATCH, "Callback signature mismatch")

    def server_error(self, txn_id: Optional[str], attendee: bool) -> CallbackOutcome:
        """Outcome for an unexpected failure while handling a callback."""
        return CallbackOutcome(
            succeeded=False,
            frontend_url=self.settings.frontend_url,
            txn_id=txn_id or None,
            reason=SERVER_ERROR,
            attendee=attendee,
        )

    # ------------------------------------------------------------------
    # Success
    # ------------------------------------------------------------------

    async def handle_success(
        self,
        payload: CallbackPayload,
        attendee: bool = False,
        ip_address: Optional[str] = None,
    ) -> CallbackOutcome:
        record = await self._find(payload.txnid, attendee)
        try:
            self.verify_signature(payload)
            if record is None:
                return self._unknown(payload, attendee)
            if record.payment_status == PaymentStatus.PAID:
                # Duplicate delivery
                logger.info("Duplicate success callback ignored", extra={"txn_id": payload.txnid})
                return self._success(record, payload, attendee)
            if payload.status.lower() != GATEWAY_SUCCESS:
                return await self._apply_failure(record, payload, attendee, ip_address)
            self._check_amount(record, payload)
        except IntegrityViolation as violation:
            return await self._reject(record, payload, attendee, violation, ip_address)

        if attendee:
            return await self._mark_attendee_paid(record, payload, ip_address)
        return await self._mark_submission_paid(record, payload, ip_address)

    async def _mark_submission_paid(
        self,
        record: Submission,
        payload: CallbackPayload,
        ip_address: Optional[str],
    ) -> CallbackOutcome:
        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.id == record.id,
                Submission.payment_txn_id == payload.txnid,
                Submission.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                payment_status=PaymentStatus.PAID.value,
                payment_date=datetime.now(timezone.utc),
                payment_gateway_status=payload.status,
                receipt_number=func.coalesce(
                    Submission.receipt_number,
                    submission_receipt_number(self.settings, payload.txnid),
                ),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(record)
        if result.rowcount != 1:
            return self._after_lost_race(record, payload, attendee=False)

        await self.event_store.log(
            event_type=EventType.PAYMENT_SUCCEEDED,
            entity_type="submission",
            entity_id=record.id,
            payload={
                "txn_id": payload.txnid,
                "amount": record.payment_amount,
                "receipt_number": record.receipt_number,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Payment completed",
            extra={"txn_id": payload.txnid, "receipt_number": record.receipt_number},
        )
        return self._success(record, payload, attendee=False)

    async def _mark_attendee_paid(
        self,
        record: Attendee,
        payload: CallbackPayload,
        ip_address: Optional[str],
    ) -> CallbackOutcome:
        other = aliased(Attendee)
        another_paid = exists(
            select(other.id).where(
                other.email == record.email,
                other.payment_status == PaymentStatus.PAID.value,
                other.id != record.id,
            )
        )
        result = await self.session.execute(
            update(Attendee)
            .where(
                Attendee.id == record.id,
                Attendee.payment_status == PaymentStatus.PENDING.value,
                ~another_paid,
            )
            .values(
                payment_status=PaymentStatus.PAID.value,
                payment_amount=record.amount,
                payment_date=datetime.now(timezone.utc),
                payment_gateway_status=payload.status,
                receipt_number=func.coalesce(
                    Attendee.receipt_number,
                    attendee_receipt_number(self.settings, payload.txnid),
                ),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(record)
        if result.rowcount == 1:
            await self.event_store.log(
                event_type=EventType.ATTENDEE_PAYMENT_SUCCEEDED,
                entity_type="attendee",
                entity_id=record.id,
                payload={
                    "txn_id": payload.txnid,
                    "email": record.email,
                    "receipt_number": record.receipt_number,
                },
                ip_address=ip_address,
            )
            logger.info(
                "Attendee payment completed",
                extra={"txn_id": payload.txnid, "receipt_number": record.receipt_number},
            )
            return self._success(record, payload, attendee=True)

        if record.payment_status == PaymentStatus.PENDING:
            return await self._mark_duplicate_registration(record, payload, ip_address)
        return self._after_lost_race(record, payload, attendee=True)

    async def _mark_duplicate_registration(
        self,
        record: Attendee,
        payload: CallbackPayload,
        ip_address: Optional[str],
    ) -> CallbackOutcome:
        """A second paid registration for one email: keep the first, flag this one."""
        await self.session.execute(
            update(Attendee)
            .where(
                Attendee.id == record.id,
                Attendee.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                payment_status=PaymentStatus.FAILED.value,
                payment_gateway_status=DUPLICATE_REGISTRATION,
                payment_failed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await self.event_store.log(
            event_type=EventType.ATTENDEE_DUPLICATE_PAYMENT,
            entity_type="attendee",
            entity_id=record.id,
            payload={"txn_id": payload.txnid, "email": record.email, "amount": payload.amount},
            ip_address=ip_address,
        )
        logger.error(
            "Duplicate paid attendee registration; refund required",
            extra={"txn_id": payload.txnid, "email": record.email, "amount": payload.amount},
        )
        return CallbackOutcome(
            succeeded=False,
            frontend_url=self._frontend_url(record),
            txn_id=payload.txnid,
            reason=DUPLICATE_REGISTRATION,
            attendee=True,
        )

    def _after_lost_race(
        self,
        record: PaymentRecord,
        payload: CallbackPayload,
        attendee: bool,
    ) -> CallbackOutcome:
        if record.payment_status == PaymentStatus.PAID:
            return self._success(record, payload, attendee)
        logger.warning(
            "Success callback for a payment that is no longer pending",
            extra={"txn_id": payload.txnid, "payment_status": record.payment_status},
        )
        return CallbackOutcome(
            succeeded=False,
            frontend_url=self._frontend_url(record),
            txn_id=payload.txnid,
            reason=INVALID_STATE,
            attendee=attendee,
        )

    # ------------------------------------------------------------------
    # Failure
    # ------------------------------------------------------------------

    async def handle_failure(
        self,
        payload: CallbackPayload,
        attendee: bool = False,
        ip_address: Optional[str] = None,
    ) -> CallbackOutcome:
        record = await self._find(payload.txnid, attendee)
        try:
            self.verify_signature(payload)
        except IntegrityViolation as violation:
            return await self._reject(record, payload, attendee, violation, ip_address)
        if record is None:
            return self._unknown(payload, attendee)
        return await self._apply_failure(record, payload, attendee, ip_address)

    async def _apply_failure(
        self,
        record: PaymentRecord,
        payload: CallbackPayload,
        attendee: bool,
        ip_address: Optional[str],
    ) -> CallbackOutcome:
        """``pending -> failed``; a paid record is never overwritten."""
        model = Attendee if attendee else Submission
        result = await self.session.execute(
            update(model)
            .where(
                model.id == record.id,
                model.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                payment_status=PaymentStatus.FAILED.value,
                payment_gateway_status=payload.status or "failed",
                payment_failed_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            await self.event_store.log(
                event_type=(
                    EventType.ATTENDEE_PAYMENT_FAILED if attendee else EventType.PAYMENT_FAILED
                ),
                entity_type="attendee" if attendee else "submission",
                entity_id=record.id,
                payload={"txn_id": payload.txnid, "gateway_status": payload.status},
                ip_address=ip_address,
            )
            logger.info(
                "Payment failed",
                extra={"txn_id": payload.txnid, "gateway_status": payload.status},
            )
        return CallbackOutcome(
            succeeded=False,
            frontend_url=self._frontend_url(record),
            txn_id=payload.txnid,
            reason=PAYMENT_FAILED,
            attendee=attendee,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find(self, txn_id: str, attendee: bool) -> Optional[PaymentRecord]:
        if not txn_id:
            return None
        if attendee:
            query = select(Attendee).where(Attendee.txn_id == txn_id)
        else:
            query = select(Submission).where(Submission.payment_txn_id == txn_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    def _check_amount(self, record: PaymentRecord, payload: CallbackPayload) -> None:
        expected = record.amount if isinstance(record, Attendee) else record.payment_amount
        try:
            received = Decimal(payload.amount)
        except InvalidOperation:
            received = None
        if expected is None or received is None or received != Decimal(expected):
            raise IntegrityViolation(AMOUNT_MISMATCH, "Callback amount differs from the recorded fee")

    async def _reject(
        self,
        record: Optional[PaymentRecord],
        payload: CallbackPayload,
        attendee: bool,
        violation: IntegrityViolation,
        ip_address: Optional[str],
    ) -> CallbackOutcome:
        """Tampered callback: log a security event, change nothing."""
        logger.warning(
            "Rejected payment callback",
            extra={
                "txn_id": payload.txnid,
                "reason": violation.reason,
                "attendee": attendee,
                "client_ip": ip_address,
            },
        )
        if record is not None:
            await self.event_store.log(
                event_type=EventType.PAYMENT_SIGNATURE_REJECTED,
                entity_type="attendee" if attendee else "submission",
                entity_id=record.id,
                payload={"txn_id": payload.txnid, "reason": violation.reason},
                ip_address=ip_address,
            )
        return CallbackOutcome(
            succeeded=False,
            frontend_url=self.settings.frontend_url,
            txn_id=payload.txnid or None,
            reason=violation.reason,
            attendee=attendee,
        )

    def _unknown(self, payload: CallbackPayload, attendee: bool) -> CallbackOutcome:
        logger.warning(
            "Callback for unknown transaction",
            extra={"txn_id": payload.txnid, "attendee": attendee},
        )
        return CallbackOutcome(
            succeeded=False,
            frontend_url=self.settings.frontend_url,
            txn_id=payload.txnid or None,
            reason=UNKNOWN_TRANSACTION,
            attendee=attendee,
        )

    def _success(
        self,
        record: PaymentRecord,
        payload: CallbackPayload,
        attendee: bool,
    ) -> CallbackOutcome:
        return CallbackOutcome(
            succeeded=True,
            frontend_url=self._frontend_url(record),
            txn_id=payload.txnid,
            amount=payload.amount,
            attendee=attendee,
        )

    def _frontend_url(self, record: PaymentRecord) -> str:
        return record.payment_frontend_url or self.settings.frontend_url
