"""
Full-paper payment endpoints and gateway callbacks.

Callbacks always answer with a 303 redirect to the payer's frontend; the
gateway never sees an error body.
"""

from typing import Optional

from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.api.deps import (
    AppSettings,
    CurrentUser,
    DbSession,
    Gateway,
    get_client_ip,
)
from confportal.config import Settings
from confportal.engines.payments.callback_verifier import (
    CallbackPayload,
    PaymentCallbackVerifier,
)
from confportal.engines.payments.session_manager import PaymentSessionManager
from confportal.logging_config import get_logger
from confportal.schemas.payment import (
    PaymentInitiateRequest,
    PaymentInitiateResponse,
    PaymentStatusResponse,
)

logger = get_logger(__name__)

router = APIRouter()


async def handle_callback(
    request: Request,
    db: AsyncSession,
    settings: Settings,
    succeeded: bool,
    attendee: bool,
) -> RedirectResponse:
    """Verify a gateway callback and redirect the payer's browser."""
    verifier = PaymentCallbackVerifier(db, settings)
    txn_id = None
    try:
        form = await request.form()
        payload = CallbackPayload.from_form(form)
        txn_id = payload.txnid
        if succeeded:
            outcome = await verifier.handle_success(
                payload, attendee=attendee, ip_address=get_client_ip(request)
            )
        else:
            outcome = await verifier.handle_failure(
                payload, attendee=attendee, ip_address=get_client_ip(request)
            )
    except Exception:
        await db.rollback()
        logger.exception(
            "Payment callback processing failed",
            extra={"txn_id": txn_id, "attendee": attendee},
        )
        outcome = verifier.server_error(txn_id, attendee)
    return RedirectResponse(outcome.redirect_url, status_code=status.HTTP_303_SEE_OTHER)


@router.post("", response_model=PaymentInitiateResponse)
async def initiate_payment(
    request: Request,
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    gateway: Gateway,
    data: Optional[PaymentInitiateRequest] = None,
):
    """
    Start payment of the conference fee for the caller's accepted full paper.

    The amount depends only on the caller's role.
    """
    manager = PaymentSessionManager(db, settings, gateway)
    initiation = await manager.initiate_full_paper(
        user_id=user.id,
        frontend_url=data.frontend_url if data else None,
        ip_address=get_client_ip(request),
    )
    return PaymentInitiateResponse.model_validate(initiation)


@router.get("/status", response_model=PaymentStatusResponse)
async def get_payment_status(
    user: CurrentUser,
    db: DbSession,
    settings: AppSettings,
    gateway: Gateway,
):
    manager = PaymentSessionManager(db, settings, gateway)
    view = await manager.payment_status(user.id)
    return PaymentStatusResponse.model_validate(view)


@router.post("/callback/success", include_in_schema=False)
async def payment_success_callback(request: Request, db: DbSession, settings: AppSettings):
    return await handle_callback(request, db, settings, succeeded=True, attendee=False)


@router.post("/callback/failure", include_in_schema=False)
async def payment_failure_callback(request: Request, db: DbSession, settings: AppSettings):
    return await handle_callback(request, db, settings, succeeded=False, attendee=False)
