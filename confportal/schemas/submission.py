"""
Submission, review and revision schemas.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


class AuthorEntry(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    affiliation: Optional[str] = Field(None, max_length=255)


class SubmissionResponse(BaseModel):
    """A submission as seen by its author or an admin."""

    id: uuid.UUID
    owner_id: uuid.UUID
    reference_number: str
    title: str
    authors: List[dict]
    submission_type: str
    status: str
    current_version: int
    pdf_url: str
    review_comments: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    last_revision_at: Optional[datetime] = None
    payment_status: str
    payment_amount: Optional[Decimal] = None
    receipt_number: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("submission_type", "status", "payment_status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return v.value if isinstance(v, Enum) else v

    class Config:
        from_attributes = True


class StatusUpdateRequest(BaseModel):
    """Admin review decision."""

    status: str
    review_comments: Optional[str] = Field(None, max_length=5000)


class RevisionResponse(BaseModel):
    submission_id: uuid.UUID
    version: int
    file_url: str
    total_versions: int
    message: str = "Revised paper submitted for review"


class VersionEntryResponse(BaseModel):
    version: int
    file_url: str
    submitted_at: Optional[datetime] = None
    status: str
    admin_comments: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    is_current: bool = False

    class Config:
        from_attributes = True


class VersionHistoryResponse(BaseModel):
    submission_id: uuid.UUID
    reference_number: str
    current_version: int
    versions: List[VersionEntryResponse]
