"""
Identity document upload and status endpoints.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile

from confportal.api.deps import (
    AppSettings,
    CurrentUser,
    DbSession,
    FileHost,
    TokenClaims,
    get_client_ip,
    read_upload,
)
from confportal.engines.verification.document_verification import (
    DocumentKind,
    VerificationService,
)
from confportal.kernel.models.user import User
from confportal.schemas.verification import (
    DocumentUploadResponse,
    VerificationStatusResponse,
)

router = APIRouter()


def to_status_response(user: User) -> VerificationStatusResponse:
    return VerificationStatusResponse(
        user_id=user.id,
        verification_status=user.verification_status,
        id_card_url=user.id_card_url,
        payment_receipt_image_url=user.payment_receipt_image_url,
        verification_date=user.verification_date,
        verified_by=user.verified_by,
        last_document_upload_at=user.last_document_upload_at,
    )


async def _upload(
    kind: DocumentKind,
    request: Request,
    user: User,
    db: DbSession,
    settings: AppSettings,
    file_host: FileHost,
    file: Optional[UploadFile],
) -> DocumentUploadResponse:
    service = VerificationService(db, settings, file_host=file_host)
    updated = await service.upload_document(
        user_id=user.id,
        kind=kind,
        upload=await read_upload(file),
        ip_address=get_client_ip(request),
    )
    url = updated.id_card_url if kind == DocumentKind.ID_CARD else updated.payment_receipt_image_url
    return DocumentUploadResponse(url=url, verification_status=updated.verification_status)


@router.post("/id-card", response_model=DocumentUploadResponse)
async def upload_id_card(
    request: Request,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    file_host: FileHost,
    file: Optional[UploadFile] = File(None),
):
    """Upload a JPEG or PNG image of the caller's ID card."""
    return await _upload(DocumentKind.ID_CARD, request, user, db, settings, file_host, file)


@router.post("/payment-receipt", response_model=DocumentUploadResponse)
async def upload_payment_receipt(
    request: Request,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    file_host: FileHost,
    file: Optional[UploadFile] = File(None),
):
    """Upload a JPEG or PNG image of an offline payment receipt."""
    return await _upload(DocumentKind.PAYMENT_RECEIPT, request, user, db, settings, file_host, file)


@router.get("/users/{user_id}", response_model=VerificationStatusResponse)
async def get_verification_status(
    user_id: uuid.UUID,
    user: CurrentUser,
    claims: TokenClaims,
    db: DbSession,
    settings: AppSettings,
):
    service = VerificationService(db, settings)
    target = await service.get_status(user_id, user.id, claims)
    return to_status_response(target)
