"""
Admin endpoints: review decisions and identity document verification.

Admin rights are decided by the AdminResolver inside each service, so
these routes only need an authenticated caller.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Query, Request

from confportal.api.deps import (
    AppSettings,
    CurrentUser,
    DbSession,
    TokenClaims,
    get_client_ip,
)
from confportal.api.v1.verification import to_status_response
from confportal.engines.verification.document_verification import VerificationService
from confportal.orchestration.state_machine import StateMachine
from confportal.orchestration.submission_service import SubmissionService
from confportal.schemas.submission import StatusUpdateRequest, SubmissionResponse
from confportal.schemas.verification import (
    VerificationDecisionRequest,
    VerificationQueueEntry,
    VerificationStatusResponse,
)

router = APIRouter()


@router.get("/submissions", response_model=List[SubmissionResponse])
async def list_all_submissions(
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
    settings: AppSettings,
    status: Optional[str] = Query(None, description="Filter by review status"),
):
    service = SubmissionService(db, settings)
    submissions = await service.list_all(user.id, claims, status=status)
    return [SubmissionResponse.model_validate(s) for s in submissions]


@router.patch("/submissions/{submission_id}/status", response_model=SubmissionResponse)
async def update_submission_status(
    request: Request,
    submission_id: uuid.UUID,
    data: StatusUpdateRequest,
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
):
    """
    Record a review decision.

    Allowed moves: pending or pending_review to accepted,
    accepted_with_revision (comments required) or rejected.
    """
    machine = StateMachine(db)
    submission = await machine.transition(
        submission_id=submission_id,
        to_state=data.status,
        admin_id=user.id,
        review_comments=data.review_comments,
        claims=claims,
        ip_address=get_client_ip(request),
    )
    return SubmissionResponse.model_validate(submission)


@router.get("/verification", response_model=List[VerificationQueueEntry])
async def list_verification_queue(
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
    settings: AppSettings,
):
    """Users awaiting or past document review: pending, rejected, approved."""
    service = VerificationService(db, settings)
    entries = await service.review_queue(user.id, claims)
    return [
        VerificationQueueEntry(
            user_id=e.user.id,
            name=e.user.full_name,
            email=e.user.email,
            phone=e.user.phone,
            role=e.user.role,
            institution=e.user.institution,
            id_card_url=e.user.id_card_url,
            payment_receipt_image_url=e.user.payment_receipt_image_url,
            verification_status=e.user.verification_status,
            verification_date=e.user.verification_date,
            verified_by=e.user.verified_by,
            last_document_upload_at=e.user.last_document_upload_at,
            payment_exempted=e.fee_exempt,
            exemption_reason=e.exemption_reason,
        )
        for e in entries
    ]


@router.post("/verification/{user_id}", response_model=VerificationStatusResponse)
async def decide_verification(
    request: Request,
    user_id: uuid.UUID,
    data: VerificationDecisionRequest,
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
    settings: AppSettings,
):
    """Approve or reject a user's identity documents."""
    service = VerificationService(db, settings)
    target = await service.decide(
        user_id=user_id,
        admin_id=user.id,
        action=data.action,
        claims=claims,
        ip_address=get_client_ip(request),
    )
    return to_status_response(target)
