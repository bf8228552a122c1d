"""
Receipt PDF rendering with reportlab.

Fed only with fields that were verified and persisted by the payment flow;
nothing here decides anything.
"""

import io
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

NAVY = HexColor("#1B2A4A")
GREEN = HexColor("#166534")
TEXT_DARK = HexColor("#2D3748")
TEXT_GRAY = HexColor("#64748B")
HEADER_FILL = HexColor("#E8E8E8")
BORDER_GRAY = HexColor("#CBD5E1")

W, H = A4
MARGIN = 50
TABLE_X = MARGIN + 30
TABLE_W = W - 2 * MARGIN - 60
LABEL_COL_W = 160
ROW_H = 30


@dataclass
class ReceiptDocument:
    """Everything printed on one receipt."""
    receipt_number: str
    event_name: str
    support_email: str
    rows: List[Tuple[str, str]] = field(default_factory=list)
    title: str = "Payment Receipt"
    note: Optional[str] = None


def format_receipt_date(value: Optional[datetime], tz_name: str) -> str:
    """``05 Mar 2026, 02:30 PM`` in the event's timezone."""
    if value is None:
        return "N/A"
    if value.tzinfo is None:
        # SQLite hands back naive UTC
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name)).strftime("%d %b %Y, %I:%M %p")


def format_amount(value: Optional[Decimal]) -> str:
    if value is None:
        return "N/A"
    return f"Rs. {Decimal(value):.2f}"


def render_receipt_pdf(document: ReceiptDocument) -> bytes:
    """Render an A4 receipt and return the PDF bytes."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(f"Receipt - {document.receipt_number}")
    c.setAuthor(document.event_name)

    y = H - MARGIN

    # Header band
    c.setFillColor(NAVY)
    c.rect(0, y - 40, W, 70, stroke=0, fill=1)
    c.setFillColor(HexColor("#FFFFFF"))
    c.setFont("Helvetica-Bold", 20)
    c.drawCentredString(W / 2, y - 5, document.event_name)
    c.setFont("Helvetica", 11)
    c.drawCentredString(W / 2, y - 25, document.title)
    y -= 80

    c.setFillColor(GREEN)
    c.setFont("Helvetica-Bold", 16)
    c.drawCentredString(W / 2, y, "Payment Successful")
    y -= 22
    c.setFillColor(TEXT_DARK)
    c.setFont("Helvetica", 11)
    c.drawCentredString(W / 2, y, f"Thank you for registering for {document.event_name}!")
    y -= 16
    c.setFillColor(TEXT_GRAY)
    c.setFont("Helvetica", 9)
    c.drawCentredString(W / 2, y, f"Receipt No: {document.receipt_number}")
    y -= 35

    # Table header
    c.setFillColor(HEADER_FILL)
    c.rect(TABLE_X, y - ROW_H, TABLE_W, ROW_H, stroke=0, fill=1)
    c.setFillColor(TEXT_DARK)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(TABLE_X + 12, y - 19, "Field")
    c.drawString(TABLE_X + LABEL_COL_W, y - 19, "Details")
    y -= ROW_H

    c.setStrokeColor(BORDER_GRAY)
    c.setLineWidth(0.3)
    for label, value in document.rows:
        is_amount = label == "Amount Paid"
        c.setFillColor(TEXT_GRAY)
        c.setFont("Helvetica", 10)
        c.drawString(TABLE_X + 12, y - 19, label)
        c.setFillColor(GREEN if is_amount else TEXT_DARK)
        c.setFont("Helvetica-Bold" if is_amount else "Helvetica", 10)
        c.drawString(TABLE_X + LABEL_COL_W, y - 19, value)
        c.line(TABLE_X, y - ROW_H, TABLE_X + TABLE_W, y - ROW_H)
        y -= ROW_H

    if document.note:
        y -= 25
        c.setFillColor(TEXT_DARK)
        c.setFont("Helvetica-Bold", 9)
        c.drawString(TABLE_X, y, "Note: ")
        c.setFont("Helvetica", 9)
        c.drawString(TABLE_X + 30, y, document.note)

    # Footer
    y -= 45
    c.setFillColor(TEXT_GRAY)
    c.setFont("Helvetica-Oblique", 9)
    c.drawCentredString(
        W / 2, y,
        "This is a system-generated receipt and does not require a physical signature.",
    )
    y -= 16
    c.setFont("Helvetica", 8)
    c.drawCentredString(W / 2, y, f"For queries, contact: {document.support_email}")

    c.showPage()
    c.save()
    return buffer.getvalue()
