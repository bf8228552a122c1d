"""
Receipt endpoints. PDFs are rendered on request from the stored payment.
"""

from fastapi import APIRouter, Response

from confportal.api.deps import AppSettings, CurrentUser, DbSession
from confportal.engines.receipts.receipt_generator import ReceiptGenerator, RenderedReceipt
from confportal.schemas.payment import ReceiptStatusResponse

router = APIRouter()


def _pdf_response(receipt: RenderedReceipt, attachment: bool) -> Response:
    disposition = "attachment" if attachment else "inline"
    return Response(
        content=receipt.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="{receipt.filename}"'},
    )


@router.get("/me", response_class=Response)
async def view_my_receipt(user: CurrentUser, db: DbSession, settings: AppSettings):
    """Receipt for the caller's paid full paper, shown inline."""
    receipt = await ReceiptGenerator(db, settings).for_user(user.id)
    return _pdf_response(receipt, attachment=False)


@router.get("/me/download", response_class=Response)
async def download_my_receipt(user: CurrentUser, db: DbSession, settings: AppSettings):
    receipt = await ReceiptGenerator(db, settings).for_user(user.id)
    return _pdf_response(receipt, attachment=True)


@router.get("/me/status", response_model=ReceiptStatusResponse)
async def my_receipt_status(user: CurrentUser, db: DbSession, settings: AppSettings):
    status = await ReceiptGenerator(db, settings).status_for_user(user.id)
    return ReceiptStatusResponse.model_validate(status)


@router.get("/attendees/{txn_id}", response_class=Response)
async def view_attendee_receipt(txn_id: str, db: DbSession, settings: AppSettings):
    """Attendee receipt by transaction id, shown inline."""
    receipt = await ReceiptGenerator(db, settings).for_attendee(txn_id)
    return _pdf_response(receipt, attachment=False)


@router.get("/attendees/{txn_id}/download", response_class=Response)
async def download_attendee_receipt(txn_id: str, db: DbSession, settings: AppSettings):
    receipt = await ReceiptGenerator(db, settings).for_attendee(txn_id)
    return _pdf_response(receipt, attachment=True)
