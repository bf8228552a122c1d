"""
Identity document verification schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class VerificationStatusResponse(BaseModel):
    user_id: uuid.UUID
    verification_status: str
    id_card_url: Optional[str] = None
    payment_receipt_image_url: Optional[str] = None
    verification_date: Optional[datetime] = None
    verified_by: Optional[uuid.UUID] = None
    last_document_upload_at: Optional[datetime] = None


class DocumentUploadResponse(BaseModel):
    url: str
    verification_status: str
    message: str = "Document uploaded"


class VerificationDecisionRequest(BaseModel):
    action: str


class VerificationQueueEntry(BaseModel):
    """One row of the admin verification list."""

    user_id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None
    role: Optional[str] = None
    institution: Optional[str] = None
    id_card_url: Optional[str] = None
    payment_receipt_image_url: Optional[str] = None
    verification_status: str
    verification_date: Optional[datetime] = None
    verified_by: Optional[uuid.UUID] = None
    last_document_upload_at: Optional[datetime] = None
    payment_exempted: bool = False
    exemption_reason: Optional[str] = None
