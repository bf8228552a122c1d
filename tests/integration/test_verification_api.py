"""Integration tests for identity document verification."""

import uuid

import pytest
from httpx import AsyncClient

from confportal.kernel.models import EventType, User

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


async def _upload(client: AsyncClient, headers, path="id-card", name="card.png", content=PNG, mime="image/png"):
    return await client.post(
        f"/api/v1/verification/{path}",
        files={"file": (name, content, mime)},
        headers=headers,
    )


async def _decide(client: AsyncClient, user_id, headers, action):
    return await client.post(
        f"/api/v1/admin/verification/{user_id}",
        json={"action": action},
        headers=headers,
    )


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_moves_user_to_pending(
        self, client: AsyncClient, make_user, fake_file_host, fetch, count_events
    ):
        user, headers = await make_user()

        r = await _upload(client, headers)

        assert r.status_code == 200, r.text
        assert r.json()["verification_status"] == "pending"
        assert r.json()["url"].startswith(f"https://files.test/conference/id-cards/{user.id}_")
        assert r.json()["url"].endswith(".png")
        stored = await fetch(User, user.id)
        assert stored.id_card_url == r.json()["url"]
        assert stored.last_document_upload_at is not None
        assert await count_events(EventType.DOCUMENT_UPLOADED) == 1

    @pytest.mark.asyncio
    async def test_payment_receipt_image(self, client: AsyncClient, make_user, fetch):
        user, headers = await make_user()

        r = await _upload(client, headers, path="payment-receipt", name="proof.jpg", mime="image/jpeg")

        assert r.status_code == 200
        assert "/conference/payment-receipts/" in r.json()["url"]
        stored = await fetch(User, user.id)
        assert stored.payment_receipt_image_url == r.json()["url"]

    @pytest.mark.asyncio
    async def test_pdf_is_rejected(self, client: AsyncClient, make_user, fake_file_host):
        _, headers = await make_user()

        r = await _upload(client, headers, name="card.pdf", content=b"%PDF", mime="application/pdf")

        assert r.status_code == 400
        assert fake_file_host.objects == {}

    @pytest.mark.asyncio
    async def test_approved_documents_are_frozen(
        self, client: AsyncClient, make_user, admin, fake_file_host, fetch
    ):
        user, headers = await make_user()
        _, admin_headers = admin
        first = await _upload(client, headers)
        await _decide(client, user.id, admin_headers, "approved")
        uploads = len(fake_file_host.objects)

        r = await _upload(client, headers)

        assert r.status_code == 409
        assert len(fake_file_host.objects) == uploads
        stored = await fetch(User, user.id)
        assert stored.verification_status == "approved"
        assert stored.id_card_url == first.json()["url"]

    @pytest.mark.asyncio
    async def test_rejected_user_can_upload_again(self, client: AsyncClient, make_user, admin):
        user, headers = await make_user()
        _, admin_headers = admin
        await _upload(client, headers)
        await _decide(client, user.id, admin_headers, "rejected")

        r = await _upload(client, headers)

        assert r.status_code == 200
        assert r.json()["verification_status"] == "pending"


class TestDecision:

    @pytest.mark.asyncio
    async def test_approve(self, client: AsyncClient, make_user, admin, count_events):
        user, headers = await make_user()
        admin_user, admin_headers = admin
        await _upload(client, headers)

        r = await _decide(client, user.id, admin_headers, "approved")

        assert r.status_code == 200, r.text
        body = r.json()
        assert body["verification_status"] == "approved"
        assert body["verified_by"] == str(admin_user.id)
        assert body["verification_date"] is not None
        assert await count_events(EventType.VERIFICATION_DECIDED) == 1

    @pytest.mark.asyncio
    async def test_invalid_action(self, client: AsyncClient, make_user, admin):
        user, _ = await make_user()
        _, admin_headers = admin

        r = await _decide(client, user.id, admin_headers, "maybe")
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_non_admin(self, client: AsyncClient, make_user, fetch):
        user, headers = await make_user()
        await _upload(client, headers)

        r = await _decide(client, user.id, headers, "approved")

        assert r.status_code == 403
        assert (await fetch(User, user.id)).verification_status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient, admin):
        _, admin_headers = admin
        r = await _decide(client, uuid.uuid4(), admin_headers, "approved")
        assert r.status_code == 404


class TestStatusAndQueue:

    @pytest.mark.asyncio
    async def test_status_is_owner_or_admin(self, client: AsyncClient, make_user, admin):
        user, headers = await make_user()
        _, stranger = await make_user()
        _, admin_headers = admin
        url = f"/api/v1/verification/users/{user.id}"

        assert (await client.get(url, headers=headers)).json()["verification_status"] == "not_submitted"
        assert (await client.get(url, headers=stranger)).status_code == 403
        assert (await client.get(url, headers=admin_headers)).status_code == 200

    @pytest.mark.asyncio
    async def test_queue_order_and_fee_waiver(self, client: AsyncClient, make_user, admin):
        approved, approved_h = await make_user(full_name="Approved")
        rejected, rejected_h = await make_user(full_name="Rejected")
        pending, pending_h = await make_user(full_name="Pending", institution=" Union Christian College ")
        await make_user(full_name="Never Uploaded")
        _, admin_headers = admin

        for headers in (approved_h, rejected_h, pending_h):
            await _upload(client, headers)
        await _decide(client, approved.id, admin_headers, "approved")
        await _decide(client, rejected.id, admin_headers, "rejected")

        r = await client.get("/api/v1/admin/verification", headers=admin_headers)

        assert r.status_code == 200
        queue = r.json()
        assert [e["name"] for e in queue] == ["Pending", "Rejected", "Approved"]
        assert queue[0]["payment_exempted"] is True
        assert queue[0]["exemption_reason"] == "Institutional Fee Waiver"
        assert queue[1]["payment_exempted"] is False
        assert queue[1]["exemption_reason"] is None

    @pytest.mark.asyncio
    async def test_queue_is_admin_only(self, client: AsyncClient, make_user):
        _, headers = await make_user()
        r = await client.get("/api/v1/admin/verification", headers=headers)
        assert r.status_code == 403
