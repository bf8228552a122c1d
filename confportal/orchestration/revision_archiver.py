"""
Revision archiver: resubmission of a paper that was accepted with revision.

The superseded version is snapshotted into ``submission_versions`` in the
same transaction as the guarded UPDATE that advances the submission, so
``versions[i].version == i + 1`` and ``current_version == len(versions) + 1``
hold at every commit.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.config import Settings
from confportal.engines.storage.file_hosting import (
    PDF_CONTENT_TYPE,
    REVISIONS_FOLDER,
    FileHostingService,
    UploadedFile,
    check_paper_file,
)
from confportal.kernel.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.jwt import AccessTokenPayload
from confportal.kernel.models.event_log import EventType
from confportal.kernel.models.submission import (
    Submission,
    SubmissionStatus,
    SubmissionType,
    SubmissionVersion,
)
from confportal.kernel.permissions.admin_resolver import AdminResolver
from confportal.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RevisionResult:
    """Outcome of a successful resubmission."""
    submission_id: uuid.UUID
    version: int
    file_url: str
    total_versions: int


@dataclass
class VersionEntry:
    """One entry of a submission's version history."""
    version: int
    file_url: str
    submitted_at: Optional[datetime]
    status: str
    admin_comments: Optional[str]
    reviewed_by: Optional[uuid.UUID]
    reviewed_at: Optional[datetime]
    is_current: bool = False


class RevisionArchiver:
    """Archives the current version and installs a revised file."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        file_host: FileHostingService,
        admin_resolver: Optional[AdminResolver] = None,
    ):
        self.session = session
        self.settings = settings
        self.file_host = file_host
        self.event_store = EventStore(session)
        self.admin_resolver = admin_resolver or AdminResolver(session)

    async def resubmit(
        self,
        submission_id: uuid.UUID,
        caller_id: uuid.UUID,
        upload: Optional[UploadedFile],
        ip_address: Optional[str] = None,
    ) -> RevisionResult:
        """
        Upload a revised paper and move the submission to ``pending_review``.

        Raises:
            NotFoundError: no such submission
            AuthorizationError: caller is not the owner
            ValidationError: not a full paper, or missing/invalid file
            ConflictError: status is not accepted_with_revision, or it changed
                while the file was uploading
        """
        submission = await self.session.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if submission.owner_id != caller_id:
            raise AuthorizationError()
        if submission.submission_type != SubmissionType.FULLPAPER:
            raise ValidationError("Only full papers can be revised")

        status = SubmissionStatus.parse(submission.status)
        if status != SubmissionStatus.ACCEPTED_WITH_REVISION:
            raise ConflictError(
                f"Resubmission is only allowed for papers accepted with revision "
                f"(current status: {status.value})"
            )

        check_paper_file(upload, self.settings.max_paper_size_bytes)

        # Snapshot of the version being superseded
        observed_version = submission.current_version
        previous = VersionEntry(
            version=observed_version,
            file_url=submission.pdf_url,
            submitted_at=submission.last_revision_at or submission.created_at,
            status=submission.status,
            admin_comments=submission.review_comments,
            reviewed_by=submission.reviewed_by,
            reviewed_at=submission.reviewed_at,
        )
        new_version = observed_version + 1

        now = datetime.now(timezone.utc)
        public_id = (
            f"{submission.reference_number}_v{new_version}_{int(now.timestamp() * 1000)}.pdf"
        )
        new_url = await self.file_host.upload(
            upload.data,
            folder=REVISIONS_FOLDER,
            public_id=public_id,
            content_type=PDF_CONTENT_TYPE,
        )

        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.id == submission_id,
                Submission.status == SubmissionStatus.ACCEPTED_WITH_REVISION.value,
                Submission.current_version == observed_version,
            )
            .values(
                pdf_url=new_url,
                current_version=Submission.current_version + 1,
                review_comments=None,
                reviewed_by=None,
                reviewed_at=None,
                status=SubmissionStatus.PENDING_REVIEW.value,
                last_revision_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Resubmission lost a race; uploaded file left unreferenced",
                extra={"submission_id": str(submission_id), "file_url": new_url},
            )
            raise ConflictError("Submission changed while uploading; reload and retry")

        self.session.add(
            SubmissionVersion(
                submission_id=submission_id,
                version=previous.version,
                file_url=previous.file_url,
                submitted_at=previous.submitted_at,
                status=previous.status,
                admin_comments=previous.admin_comments,
                reviewed_by=previous.reviewed_by,
                reviewed_at=previous.reviewed_at,
            )
        )
        await self.session.flush()

        total_versions = await self._count_versions(submission_id)

        await self.event_store.log(
            event_type=EventType.SUBMISSION_REVISED,
            entity_type="submission",
            entity_id=submission_id,
            user_id=caller_id,
            payload={
                "archived_version": previous.version,
                "new_version": new_version,
                "file_url": new_url,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Revision archived",
            extra={
                "submission_id": str(submission_id),
                "reference_number": submission.reference_number,
                "new_version": new_version,
            },
        )

        await self.session.refresh(submission)
        return RevisionResult(
            submission_id=submission_id,
            version=new_version,
            file_url=new_url,
            total_versions=total_versions,
        )

    async def version_history(
        self,
        submission_id: uuid.UUID,
        caller_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
    ) -> List[VersionEntry]:
        """
        Archived versions in ascending order, followed by the current version.

        Visible to the owner and to admins.
        """
        submission = await self.session.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("Submission not found")
        if submission.owner_id != caller_id:
            await self.admin_resolver.require_admin(caller_id, claims)

        result = await self.session.execute(
            select(SubmissionVersion)
            .where(SubmissionVersion.submission_id == submission_id)
            .order_by(SubmissionVersion.version.asc())
        )
        entries = [
            VersionEntry(
                version=v.version,
                file_url=v.file_url,
                submitted_at=v.submitted_at,
                status=v.status,
                admin_comments=v.admin_comments,
                reviewed_by=v.reviewed_by,
                reviewed_at=v.reviewed_at,
            )
            for v in result.scalars().all()
        ]
        entries.append(
            VersionEntry(
                version=submission.current_version,
                file_url=submission.pdf_url,
                submitted_at=submission.last_revision_at or submission.created_at,
                status=submission.status,
                admin_comments=submission.review_comments,
                reviewed_by=submission.reviewed_by,
                reviewed_at=submission.reviewed_at,
                is_current=True,
            )
        )
        return entries

    async def _count_versions(self, submission_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(SubmissionVersion.id)).where(
                SubmissionVersion.submission_id == submission_id
            )
        )
        return result.scalar() or 0
