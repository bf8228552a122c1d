"""
Submission creation and lookup.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.config import Settings
from confportal.engines.storage.file_hosting import (
    PAPERS_FOLDER,
    FileHostingService,
    UploadedFile,
    check_paper_file,
)
from confportal.kernel.errors import AuthorizationError, NotFoundError, ValidationError
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.jwt import AccessTokenPayload
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.submission import (
    ReferenceCounter,
    Submission,
    SubmissionStatus,
    SubmissionType,
)
from confportal.kernel.permissions.admin_resolver import AdminResolver
from confportal.logging_config import get_logger

logger = get_logger(__name__)

REFERENCE_COUNTER = "submission"


class SubmissionService:
    """Creates submissions and enforces who may read them."""

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

    async def create(
        self,
        owner_id: uuid.UUID,
        title: str,
        authors: List[Dict[str, Any]],
        submission_type: str,
        upload: Optional[UploadedFile],
        ip_address: Optional[str] = None,
    ) -> Submission:
        """
        Upload the paper, then insert the submission with a fresh reference number.

        New submissions start ``pending`` at version 1 with no archived versions.
        """
        try:
            kind = SubmissionType(submission_type)
        except ValueError:
            raise ValidationError("Submission type must be abstract or fullpaper")
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if not authors:
            raise ValidationError("At least one author is required")

        content_type = check_paper_file(
            upload,
            self.settings.max_paper_size_bytes,
            allow_docx=kind == SubmissionType.ABSTRACT,
        )
        extension = "pdf" if content_type.endswith("pdf") else "docx"

        reference_number = await self.next_reference_number()
        timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        pdf_url = await self.file_host.upload(
            upload.data,
            folder=f"{PAPERS_FOLDER}/{kind.value}",
            public_id=f"{reference_number}_v1_{timestamp}.{extension}",
            content_type=content_type,
        )

        submission = Submission(
            owner_id=owner_id,
            reference_number=reference_number,
            title=title.strip(),
            authors=authors,
            submission_type=kind.value,
            status=SubmissionStatus.PENDING.value,
            current_version=1,
            pdf_url=pdf_url,
        )
        self.session.add(submission)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.SUBMISSION_CREATED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=owner_id,
            payload={
                "reference_number": reference_number,
                "submission_type": kind,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Submission created",
            extra={"submission_id": str(submission.id), "reference_number": reference_number},
        )

        await self.session.refresh(submission)
        return submission

    async def next_reference_number(self) -> str:
        """Atomically advance the counter and format ``<PREFIX>-NN``."""
        number = await self._increment_counter()
        if number is None:
            # First submission ever; a concurrent first insert fails on the
            # primary key and that request is rolled back.
            number = 1
            self.session.add(ReferenceCounter(name=REFERENCE_COUNTER, last_number=number))
            await self.session.flush()
        return f"{self.settings.reference_prefix}-{number:02d}"

    async def _increment_counter(self) -> Optional[int]:
        result = await self.session.execute(
            update(ReferenceCounter)
            .where(ReferenceCounter.name == REFERENCE_COUNTER)
            .values(last_number=ReferenceCounter.last_number + 1)
            .returning(ReferenceCounter.last_number)
        )
        return result.scalar_one_or_none()

    async def list_for_owner(self, owner_id: uuid.UUID) -> List[Submission]:
        result = await self.session.execute(
            select(Submission)
            .where(Submission.owner_id == owner_id)
            .order_by(Submission.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(
        self,
        caller_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
        status: Optional[str] = None,
    ) -> List[Submission]:
        """Admin listing, optionally filtered by status."""
        await self.admin_resolver.require_admin(caller_id, claims)

        query = select(Submission)
        if status is not None:
            query = query.where(Submission.status == SubmissionStatus.parse(status).value)
        result = await self.session.execute(query.order_by(Submission.created_at.desc()))
        return list(result.scalars().all())

    async def get_for_caller(
        self,
        submission_id: uuid.UUID,
        caller_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
    ) -> Submission:
        """Owner or admin only."""
        submission = await self.session.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if submission.owner_id != caller_id:
            if not await self.admin_resolver.is_admin(caller_id, claims):
                raise AuthorizationError()
        return submission
