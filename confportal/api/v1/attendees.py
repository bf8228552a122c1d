"""
Attendee registration endpoints. No account is needed to register.
"""

from fastapi import APIRouter, Query, Request

from confportal.api.deps import AppSettings, DbSession, Gateway, get_client_ip
from confportal.api.v1.payments import handle_callback
from confportal.engines.payments.session_manager import PaymentSessionManager
from confportal.schemas.attendee import (
    AttendeeRegistrationRequest,
    AttendeeStatusResponse,
)
from confportal.schemas.payment import PaymentInitiateResponse

router = APIRouter()


@router.post("/payments", response_model=PaymentInitiateResponse)
async def initiate_attendee_payment(
    request: Request,
    data: AttendeeRegistrationRequest,
    db: DbSession,
    settings: AppSettings,
    gateway: Gateway,
):
    """Register as an attendee and start payment of the fixed attendee fee."""
    manager = PaymentSessionManager(db, settings, gateway)
    initiation = await manager.initiate_attendee(
        name=data.name,
        email=data.email,
        phone=data.phone,
        organization=data.organization,
        frontend_url=data.frontend_url,
        ip_address=get_client_ip(request),
    )
    return PaymentInitiateResponse.model_validate(initiation)


@router.get("/status", response_model=AttendeeStatusResponse)
async def get_attendee_status(
    db: DbSession,
    settings: AppSettings,
    gateway: Gateway,
    email: str = Query(..., min_length=3),
):
    manager = PaymentSessionManager(db, settings, gateway)
    view = await manager.attendee_status(email)
    return AttendeeStatusResponse.model_validate(view)


@router.post("/payments/callback/success", include_in_schema=False)
async def attendee_success_callback(request: Request, db: DbSession, settings: AppSettings):
    return await handle_callback(request, db, settings, succeeded=True, attendee=True)


@router.post("/payments/callback/failure", include_in_schema=False)
async def attendee_failure_callback(request: Request, db: DbSession, settings: AppSettings):
    return await handle_callback(request, db, settings, succeeded=False, attendee=True)
