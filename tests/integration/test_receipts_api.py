"""Integration tests for PDF receipts."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from confportal.kernel.models import Attendee, EventType, Submission, UserRole


@pytest.fixture
def paid_author(client: AsyncClient, make_user, admin, submit_paper, set_status, fake_gateway, callback_form):
    """Factory: an author whose full paper is accepted and paid."""

    async def _make(role=UserRole.SCHOLAR):
        user, headers = await make_user(role=role, full_name="Ravi Kumar")
        _, admin_headers = admin
        created = await submit_paper(headers)
        await set_status(created["id"], admin_headers, "accepted")
        txn = (await client.post("/api/v1/payments", headers=headers)).json()["txn_id"]
        r = await client.post(
            "/api/v1/payments/callback/success", data=callback_form(fake_gateway.last_form)
        )
        assert "status=success" in r.headers["location"]
        return user, headers, txn

    return _make


class TestAuthorReceipt:

    @pytest.mark.asyncio
    async def test_inline_and_download(self, client: AsyncClient, paid_author):
        _, headers, txn = await paid_author()

        inline = await client.get("/api/v1/receipts/me", headers=headers)
        download = await client.get("/api/v1/receipts/me/download", headers=headers)

        assert inline.status_code == 200
        assert inline.headers["content-type"] == "application/pdf"
        assert inline.content.startswith(b"%PDF")
        assert inline.headers["content-disposition"] == f'inline; filename="Receipt_EVT-2026-{txn}.pdf"'
        assert download.headers["content-disposition"].startswith("attachment;")

    @pytest.mark.asyncio
    async def test_status(self, client: AsyncClient, paid_author):
        _, headers, txn = await paid_author()

        r = await client.get("/api/v1/receipts/me/status", headers=headers)

        body = r.json()
        assert body["available"] is True
        assert body["receipt_number"] == f"EVT-2026-{txn}"
        assert body["txn_id"] == txn
        assert float(body["amount"]) == 500.0

    @pytest.mark.asyncio
    async def test_missing_number_is_assigned_on_first_fetch(
        self, client: AsyncClient, paid_author, db_session, count_events
    ):
        user, headers, txn = await paid_author()
        await db_session.execute(
            update(Submission).where(Submission.owner_id == user.id).values(receipt_number=None)
        )
        await db_session.commit()

        first = await client.get("/api/v1/receipts/me", headers=headers)
        second = await client.get("/api/v1/receipts/me", headers=headers)

        expected = f'inline; filename="Receipt_EVT-2026-{txn}.pdf"'
        assert first.status_code == 200
        assert first.headers["content-disposition"] == expected
        assert second.headers["content-disposition"] == expected
        await db_session.commit()
        stored = (
            await db_session.execute(
                select(Submission)
                .where(Submission.owner_id == user.id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert stored.receipt_number == f"EVT-2026-{txn}"
        assert stored.receipt_generated_at is not None
        assert await count_events(EventType.RECEIPT_ISSUED) == 1

    @pytest.mark.asyncio
    async def test_unpaid_author_is_refused(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status
    ):
        _, headers = await make_user()
        _, admin_headers = admin
        created = await submit_paper(headers)
        await set_status(created["id"], admin_headers, "accepted")
        await client.post("/api/v1/payments", headers=headers)

        r = await client.get("/api/v1/receipts/me", headers=headers)

        assert r.status_code == 403
        assert r.json()["detail"] == "Receipt is available only after successful payment"
        status = await client.get("/api/v1/receipts/me/status", headers=headers)
        assert status.json()["available"] is False

    @pytest.mark.asyncio
    async def test_requires_login(self, client: AsyncClient):
        assert (await client.get("/api/v1/receipts/me")).status_code == 401


class TestAttendeeReceipt:

    @pytest.mark.asyncio
    async def test_paid_attendee(self, client: AsyncClient, fake_gateway, callback_form):
        r = await client.post(
            "/api/v1/attendees/payments",
            json={"name": "Meera Nair", "email": "meera@example.com", "phone": "9876543210"},
        )
        txn = r.json()["txn_id"]
        await client.post(
            "/api/v1/attendees/payments/callback/success",
            data=callback_form(fake_gateway.last_form),
        )

        receipt = await client.get(f"/api/v1/receipts/attendees/{txn}/download")

        assert receipt.status_code == 200
        assert receipt.content.startswith(b"%PDF")
        assert receipt.headers["content-disposition"] == (
            f'attachment; filename="Attendee_Receipt_EVT-ATT-2026-{txn}.pdf"'
        )

    @pytest.mark.asyncio
    async def test_missing_number_is_assigned_on_first_fetch(
        self, client: AsyncClient, fake_gateway, callback_form, db_session, count_events
    ):
        r = await client.post(
            "/api/v1/attendees/payments",
            json={"name": "Meera Nair", "email": "meera@example.com", "phone": "9876543210"},
        )
        txn = r.json()["txn_id"]
        await client.post(
            "/api/v1/attendees/payments/callback/success",
            data=callback_form(fake_gateway.last_form),
        )
        await db_session.execute(
            update(Attendee).where(Attendee.txn_id == txn).values(receipt_number=None)
        )
        await db_session.commit()

        first = await client.get(f"/api/v1/receipts/attendees/{txn}")
        second = await client.get(f"/api/v1/receipts/attendees/{txn}")

        expected = f'inline; filename="Attendee_Receipt_EVT-ATT-2026-{txn}.pdf"'
        assert first.status_code == 200
        assert first.headers["content-disposition"] == expected
        assert second.headers["content-disposition"] == expected
        await db_session.commit()
        stored = (
            await db_session.execute(
                select(Attendee)
                .where(Attendee.txn_id == txn)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert stored.receipt_number == f"EVT-ATT-2026-{txn}"
        assert await count_events(EventType.RECEIPT_ISSUED) == 1

    @pytest.mark.asyncio
    async def test_pending_attendee(self, client: AsyncClient):
        r = await client.post(
            "/api/v1/attendees/payments",
            json={"name": "Meera Nair", "email": "meera@example.com", "phone": "9876543210"},
        )

        receipt = await client.get(f"/api/v1/receipts/attendees/{r.json()['txn_id']}")
        assert receipt.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, client: AsyncClient):
        r = await client.get("/api/v1/receipts/attendees/TXN_0_000000")
        assert r.status_code == 404
