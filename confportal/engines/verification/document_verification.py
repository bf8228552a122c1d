"""
Identity document verification.

Users upload an ID card and an offline payment receipt image; an admin
approves or rejects. Once approved, the documents are frozen: the upload
guard sits inside the UPDATE so a concurrent approval cannot be undone.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.config import Settings
from confportal.engines.storage.file_hosting import (
    ID_CARDS_FOLDER,
    PAYMENT_RECEIPTS_FOLDER,
    FileHostingService,
    UploadedFile,
    check_image_file,
)
from confportal.kernel.errors import ConflictError, NotFoundError, ValidationError
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.jwt import AccessTokenPayload
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.user import User, VerificationStatus
from confportal.kernel.permissions.admin_resolver import AdminResolver
from confportal.logging_config import get_logger

logger = get_logger(__name__)

FEE_WAIVER_REASON = "Institutional Fee Waiver"

# Review queue order: pending first, then rejected, then approved
_REVIEW_ORDER = {
    VerificationStatus.PENDING.value: 0,
    VerificationStatus.REJECTED.value: 1,
    VerificationStatus.APPROVED.value: 2,
}


class DocumentKind(str, Enum):
    ID_CARD = "id_card"
    PAYMENT_RECEIPT = "payment_receipt"


_DOCUMENT_TARGETS = {
    DocumentKind.ID_CARD: ("id_card_url", ID_CARDS_FOLDER),
    DocumentKind.PAYMENT_RECEIPT: ("payment_receipt_image_url", PAYMENT_RECEIPTS_FOLDER),
}


@dataclass
class ReviewQueueEntry:
    user: User
    fee_exempt: bool
    exemption_reason: Optional[str] = None


class VerificationService:
    """Document upload for users, decisions and review queue for admins."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        file_host: Optional[FileHostingService] = None,
        admin_resolver: Optional[AdminResolver] = None,
    ):
        self.session = session
        self.settings = settings
        self.file_host = file_host
        self.event_store = EventStore(session)
        self.admin_resolver = admin_resolver or AdminResolver(session)

    async def upload_document(
        self,
        user_id: uuid.UUID,
        kind: DocumentKind,
        upload: Optional[UploadedFile],
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Store a verification document and put the user in the review queue.

        Raises:
            NotFoundError: unknown user
            ConflictError: documents already approved
            ValidationError: missing file, not JPEG/PNG, or too large
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.verification_status == VerificationStatus.APPROVED:
            raise ConflictError("Documents are already verified and cannot be changed")

        extension = check_image_file(upload, self.settings.max_image_size_bytes)
        column, folder = _DOCUMENT_TARGETS[kind]
        timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        url = await self.file_host.upload(
            upload.data,
            folder=folder,
            public_id=f"{user_id}_{timestamp}.{extension}",
            content_type="image/png" if extension == "png" else "image/jpeg",
        )

        result = await self.session.execute(
            update(User)
            .where(
                User.id == user_id,
                User.verification_status != VerificationStatus.APPROVED.value,
            )
            .values(
                {
                    column: url,
                    "verification_status": VerificationStatus.PENDING.value,
                    "last_document_upload_at": datetime.now(timezone.utc),
                }
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Documents are already verified and cannot be changed")

        await self.event_store.log(
            event_type=EventType.DOCUMENT_UPLOADED,
            entity_type="user",
            entity_id=user_id,
            user_id=user_id,
            payload={"document": kind, "url": url},
            ip_address=ip_address,
        )
        logger.info(
            "Verification document uploaded",
            extra={"user_id": str(user_id), "document": kind.value},
        )

        await self.session.refresh(user)
        return user

    async def get_status(
        self,
        user_id: uuid.UUID,
        caller_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
    ) -> User:
        """Owner or admin only."""
        if user_id != caller_id:
            await self.admin_resolver.require_admin(caller_id, claims)
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def decide(
        self,
        user_id: uuid.UUID,
        admin_id: uuid.UUID,
        action: str,
        claims: Optional[AccessTokenPayload] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Approve or reject a user's documents.

        Raises:
            ValidationError: action is not approved/rejected
            AuthorizationError: caller is not an admin
            NotFoundError: unknown user
        """
        if action not in (VerificationStatus.APPROVED.value, VerificationStatus.REJECTED.value):
            raise ValidationError("action must be 'approved' or 'rejected'")
        await self.admin_resolver.require_admin(admin_id, claims)

        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        previous = user.verification_status
        values = {
            "verification_status": action,
            "verified_by": admin_id,
        }
        if action == VerificationStatus.APPROVED.value:
            values["verification_date"] = datetime.now(timezone.utc)

        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(values)
            .execution_options(synchronize_session=False)
        )
        await self.event_store.log(
            event_type=EventType.VERIFICATION_DECIDED,
            entity_type="user",
            entity_id=user_id,
            user_id=admin_id,
            payload={"from_status": previous, "to_status": action},
            ip_address=ip_address,
        )
        logger.info(
            "Verification decided",
            extra={"user_id": str(user_id), "decision": action},
        )

        await self.session.refresh(user)
        return user

    async def review_queue(
        self,
        admin_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
    ) -> List[ReviewQueueEntry]:
        """Users who have entered verification: pending, then rejected, then approved."""
        await self.admin_resolver.require_admin(admin_id, claims)

        result = await self.session.execute(
            select(User)
            .where(User.verification_status.in_(list(_REVIEW_ORDER)))
            .order_by(User.last_document_upload_at.desc())
        )
        users = sorted(
            result.scalars().all(),
            key=lambda u: _REVIEW_ORDER.get(u.verification_status, len(_REVIEW_ORDER)),
        )
        entries = []
        for user in users:
            exempt = self.is_fee_exempt(user.institution)
            entries.append(
                ReviewQueueEntry(
                    user=user,
                    fee_exempt=exempt,
                    exemption_reason=FEE_WAIVER_REASON if exempt else None,
                )
            )
        return entries

    def is_fee_exempt(self, institution: Optional[str]) -> bool:
        normalized = (institution or "").strip().lower()
        return normalized in {i.strip().lower() for i in self.settings.fee_exempt_institutions}
