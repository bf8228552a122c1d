"""
Attendee registration schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AttendeeRegistrationRequest(BaseModel):
    """
    Attendee registration and payment request.

    Email and phone are checked again by the payment session manager, which
    normalizes them before anything is stored.
    """

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=10, max_length=20)
    organization: Optional[str] = Field(None, max_length=255)
    frontend_url: Optional[str] = Field(None, max_length=500)


class AttendeeStatusResponse(BaseModel):
    registered: bool
    payment_status: Optional[str] = None
    name: Optional[str] = None
    txn_id: Optional[str] = None
    receipt_number: Optional[str] = None
    payment_date: Optional[datetime] = None

    class Config:
        from_attributes = True
