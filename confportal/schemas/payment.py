"""
Payment initiation and status schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class PaymentInitiateRequest(BaseModel):
    """
    Full-paper payment request.

    Only the return URL is accepted from the client; the fee is always
    computed server-side.
    """

    frontend_url: Optional[str] = Field(None, max_length=500)


class PaymentInitiateResponse(BaseModel):
    payment_url: str
    access_key: str
    txn_id: str
    amount: Decimal
    role: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentStatusResponse(BaseModel):
    has_accepted_paper: bool
    payment_status: Optional[str] = None
    amount: Optional[Decimal] = None
    txn_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    receipt_number: Optional[str] = None

    class Config:
        from_attributes = True


class ReceiptStatusResponse(BaseModel):
    available: bool
    receipt_number: Optional[str] = None
    txn_id: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None

    class Config:
        from_attributes = True
