"""
Submission endpoints for authors: create, list, read, resubmit, history.
"""

import json
import uuid
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile, status

from confportal.api.deps import (
    AppSettings,
    CurrentUser,
    DbSession,
    FileHost,
    TokenClaims,
    get_client_ip,
    read_upload,
)
from confportal.kernel.errors import ValidationError
from confportal.orchestration.revision_archiver import RevisionArchiver
from confportal.orchestration.submission_service import SubmissionService
from confportal.schemas.submission import (
    AuthorEntry,
    RevisionResponse,
    SubmissionResponse,
    VersionEntryResponse,
    VersionHistoryResponse,
)

router = APIRouter()


def _parse_authors(raw: str) -> List[dict]:
    """Authors arrive as a JSON array inside the multipart form."""
    try:
        entries = json.loads(raw)
        if not isinstance(entries, list):
            raise ValueError("authors must be a JSON array")
        return [AuthorEntry.model_validate(e).model_dump(exclude_none=True) for e in entries]
    except ValueError as e:
        raise ValidationError(f"Invalid authors: {e}")


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    request: Request,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    file_host: FileHost,
    title: str = Form(...),
    authors: str = Form(...),
    submission_type: str = Form(...),
    file: Optional[UploadFile] = File(None),
):
    """Upload a new abstract or full paper."""
    service = SubmissionService(db, settings, file_host=file_host)
    submission = await service.create(
        owner_id=user.id,
        title=title,
        authors=_parse_authors(authors),
        submission_type=submission_type,
        upload=await read_upload(file),
        ip_address=get_client_ip(request),
    )
    return SubmissionResponse.model_validate(submission)


@router.get("", response_model=List[SubmissionResponse])
async def list_my_submissions(
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
):
    """List the caller's submissions, newest first."""
    service = SubmissionService(db, settings)
    submissions = await service.list_for_owner(user.id)
    return [SubmissionResponse.model_validate(s) for s in submissions]


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: uuid.UUID,
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
    settings: AppSettings,
):
    service = SubmissionService(db, settings)
    submission = await service.get_for_caller(submission_id, user.id, claims)
    return SubmissionResponse.model_validate(submission)


@router.post("/{submission_id}/resubmit", response_model=RevisionResponse)
async def resubmit_revision(
    request: Request,
    submission_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    file_host: FileHost,
    file: Optional[UploadFile] = File(None),
):
    """
    Upload a revised full paper after an accept-with-revision decision.

    The previous version is archived and the submission goes back to review.
    """
    archiver = RevisionArchiver(db, settings, file_host)
    result = await archiver.resubmit(
        submission_id=submission_id,
        caller_id=user.id,
        upload=await read_upload(file),
        ip_address=get_client_ip(request),
    )
    return RevisionResponse(
        submission_id=result.submission_id,
        version=result.version,
        file_url=result.file_url,
        total_versions=result.total_versions,
    )


@router.get("/{submission_id}/versions", response_model=VersionHistoryResponse)
async def get_version_history(
    submission_id: uuid.UUID,
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
    settings: AppSettings,
):
    """Archived versions in order, followed by the current one."""
    service = SubmissionService(db, settings)
    archiver = RevisionArchiver(db, settings, file_host=None)
    entries = await archiver.version_history(submission_id, user.id, claims)
    submission = await service.get_for_caller(submission_id, user.id, claims)
    return VersionHistoryResponse(
        submission_id=submission.id,
        reference_number=submission.reference_number,
        current_version=submission.current_version,
        versions=[VersionEntryResponse.model_validate(e) for e in entries],
    )
