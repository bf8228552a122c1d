"""
Receipts Engine - receipt numbers, authorization gate and PDF rendering.
"""

from confportal.engines.receipts.numbering import (
    attendee_receipt_number,
    submission_receipt_number,
)
from confportal.engines.receipts.pdf_renderer import ReceiptDocument, render_receipt_pdf
from confportal.engines.receipts.receipt_generator import (
    ReceiptGenerator,
    ReceiptStatus,
    RenderedReceipt,
)

__all__ = [
    "attendee_receipt_number",
    "submission_receipt_number",
    "ReceiptDocument",
    "render_receipt_pdf",
    "ReceiptGenerator",
    "ReceiptStatus",
    "RenderedReceipt",
]
