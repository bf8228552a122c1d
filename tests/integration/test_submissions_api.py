"""Integration tests for submission creation, review decisions and revisions."""

import json
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from confportal.database import async_session_maker
from confportal.kernel.errors import ConflictError
from confportal.kernel.models import EventType, Submission, SubmissionVersion
from confportal.orchestration.state_machine import StateMachine

PDF = b"%PDF-1.4\nrevised\n%%EOF\n"


async def _resubmit(client: AsyncClient, submission_id, headers, content=PDF, name="rev.pdf"):
    return await client.post(
        f"/api/v1/submissions/{submission_id}/resubmit",
        files={"file": (name, content, "application/pdf")},
        headers=headers,
    )


async def _set_status_elsewhere(submission_id: uuid.UUID, status: str):
    """Change a submission's status from a separate connection."""
    async with async_session_maker() as other:
        await other.execute(
            update(Submission).where(Submission.id == submission_id).values(status=status)
        )
        await other.commit()


class TestCreate:

    @pytest.mark.asyncio
    async def test_new_submission_starts_pending_at_version_one(
        self, make_user, submit_paper, fake_file_host, count_events
    ):
        user, headers = await make_user()

        data = await submit_paper(headers)

        assert data["status"] == "pending"
        assert data["current_version"] == 1
        assert data["payment_status"] == "unpaid"
        assert data["owner_id"] == str(user.id)
        assert data["reference_number"] == "UCCICON26-01"
        assert data["pdf_url"].startswith("https://files.test/conference/papers/fullpaper/UCCICON26-01_v1_")
        assert len(fake_file_host.objects) == 1
        assert await count_events(EventType.SUBMISSION_CREATED) == 1

    @pytest.mark.asyncio
    async def test_reference_numbers_are_sequential_and_unique(self, make_user, submit_paper):
        _, first = await make_user()
        _, second = await make_user()

        refs = [
            (await submit_paper(first))["reference_number"],
            (await submit_paper(second, submission_type="abstract"))["reference_number"],
            (await submit_paper(first))["reference_number"],
        ]
        assert refs == ["UCCICON26-01", "UCCICON26-02", "UCCICON26-03"]

    @pytest.mark.asyncio
    async def test_abstract_accepts_docx(self, client: AsyncClient, make_user):
        _, headers = await make_user()
        r = await client.post(
            "/api/v1/submissions",
            data={
                "title": "Short Abstract",
                "authors": json.dumps([{"name": "A. Author"}]),
                "submission_type": "abstract",
            },
            files={"file": ("abstract.docx", b"PK\x03\x04", "application/octet-stream")},
            headers=headers,
        )
        assert r.status_code == 201, r.text
        assert r.json()["pdf_url"].endswith(".docx")

    @pytest.mark.asyncio
    async def test_full_paper_rejects_docx(self, client: AsyncClient, make_user):
        _, headers = await make_user()
        r = await client.post(
            "/api/v1/submissions",
            data={
                "title": "Paper",
                "authors": json.dumps([{"name": "A. Author"}]),
                "submission_type": "fullpaper",
            },
            files={"file": ("paper.docx", b"PK\x03\x04", "application/octet-stream")},
            headers=headers,
        )
        assert r.status_code == 400
        assert r.json()["detail"] == "Only PDF files are allowed"

    @pytest.mark.asyncio
    async def test_missing_file(self, client: AsyncClient, make_user):
        _, headers = await make_user()
        r = await client.post(
            "/api/v1/submissions",
            data={
                "title": "Paper",
                "authors": json.dumps([{"name": "A. Author"}]),
                "submission_type": "fullpaper",
            },
            headers=headers,
        )
        assert r.status_code == 400
        assert r.json()["detail"] == "No file uploaded"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("authors", ["not json", "{}", "[]", '[{"affiliation": "x"}]'])
    async def test_bad_authors(self, client: AsyncClient, make_user, authors):
        _, headers = await make_user()
        r = await client.post(
            "/api/v1/submissions",
            data={"title": "Paper", "authors": authors, "submission_type": "fullpaper"},
            files={"file": ("paper.pdf", PDF, "application/pdf")},
            headers=headers,
        )
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_type(self, client: AsyncClient, make_user):
        _, headers = await make_user()
        r = await client.post(
            "/api/v1/submissions",
            data={
                "title": "Poster",
                "authors": json.dumps([{"name": "A. Author"}]),
                "submission_type": "poster",
            },
            files={"file": ("paper.pdf", PDF, "application/pdf")},
            headers=headers,
        )
        assert r.status_code == 400


class TestRead:

    @pytest.mark.asyncio
    async def test_list_is_own_submissions_only(self, client: AsyncClient, make_user, submit_paper):
        _, mine = await make_user()
        _, theirs = await make_user()
        await submit_paper(mine, title="Mine")
        await submit_paper(theirs, title="Theirs")

        r = await client.get("/api/v1/submissions", headers=mine)
        assert r.status_code == 200
        assert [s["title"] for s in r.json()] == ["Mine"]

    @pytest.mark.asyncio
    async def test_other_authors_cannot_read(self, client: AsyncClient, make_user, submit_paper):
        _, owner = await make_user()
        _, stranger = await make_user()
        created = await submit_paper(owner)

        r = await client.get(f"/api/v1/submissions/{created['id']}", headers=stranger)
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_can_read(self, client: AsyncClient, make_user, admin, submit_paper):
        _, owner = await make_user()
        created = await submit_paper(owner)
        _, admin_headers = admin

        r = await client.get(f"/api/v1/submissions/{created['id']}", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["reference_number"] == created["reference_number"]

    @pytest.mark.asyncio
    async def test_unknown_submission(self, client: AsyncClient, make_user):
        _, headers = await make_user()
        r = await client.get(f"/api/v1/submissions/{uuid.uuid4()}", headers=headers)
        assert r.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_list_filters_by_status(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status
    ):
        _, owner = await make_user()
        _, admin_headers = admin
        accepted = await submit_paper(owner, title="Accepted")
        await submit_paper(owner, title="Waiting")
        await set_status(accepted["id"], admin_headers, "accepted")

        r = await client.get("/api/v1/admin/submissions?status=accepted", headers=admin_headers)
        assert r.status_code == 200
        assert [s["title"] for s in r.json()] == ["Accepted"]

        everything = await client.get("/api/v1/admin/submissions", headers=admin_headers)
        assert len(everything.json()) == 2

    @pytest.mark.asyncio
    async def test_admin_list_rejects_unknown_status(self, client: AsyncClient, admin):
        _, admin_headers = admin
        r = await client.get("/api/v1/admin/submissions?status=submitted", headers=admin_headers)
        assert r.status_code == 400


class TestReview:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", ["accepted", "rejected"])
    async def test_decision_from_pending(
        self, make_user, admin, submit_paper, set_status, count_events, target
    ):
        _, owner = await make_user()
        admin_user, admin_headers = admin
        created = await submit_paper(owner)

        r = await set_status(created["id"], admin_headers, target)

        assert r.status_code == 200, r.text
        assert r.json()["status"] == target
        assert r.json()["reviewed_by"] == str(admin_user.id)
        assert r.json()["reviewed_at"] is not None
        assert await count_events(EventType.SUBMISSION_STATUS_CHANGED) == 1

    @pytest.mark.asyncio
    async def test_status_change_after_read_is_a_conflict(
        self, make_user, admin, submit_paper, db_session, fetch, count_events
    ):
        _, owner = await make_user()
        admin_user, _ = admin
        created = await submit_paper(owner)
        submission_id = uuid.UUID(created["id"])
        # Held in this session's identity map while still pending
        await db_session.get(Submission, submission_id)
        await db_session.commit()
        await _set_status_elsewhere(submission_id, "rejected")

        with pytest.raises(ConflictError):
            await StateMachine(db_session).transition(
                submission_id, "accepted", admin_id=admin_user.id
            )
        await db_session.rollback()

        submission = await fetch(Submission, submission_id)
        assert submission.status == "rejected"
        assert submission.reviewed_by is None
        assert await count_events(EventType.SUBMISSION_STATUS_CHANGED) == 0

    @pytest.mark.asyncio
    async def test_revision_requires_comments(self, make_user, admin, submit_paper, set_status):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)

        r = await set_status(created["id"], admin_headers, "accepted_with_revision", "   ")
        assert r.status_code == 400

        r = await set_status(created["id"], admin_headers, "accepted_with_revision", "Fix figure 2")
        assert r.status_code == 200
        assert r.json()["review_comments"] == "Fix figure 2"

    @pytest.mark.asyncio
    async def test_terminal_states_do_not_move(self, make_user, admin, submit_paper, set_status):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)
        await set_status(created["id"], admin_headers, "rejected")

        r = await set_status(created["id"], admin_headers, "accepted")
        assert r.status_code == 400
        assert "rejected -> accepted" in r.json()["detail"]

    @pytest.mark.asyncio
    async def test_revision_state_cannot_be_decided_again(
        self, make_user, admin, submit_paper, set_status
    ):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)
        await set_status(created["id"], admin_headers, "accepted_with_revision", "Shorten")

        r = await set_status(created["id"], admin_headers, "accepted")
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_legacy_status_is_rejected(self, make_user, admin, submit_paper, set_status):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)

        r = await set_status(created["id"], admin_headers, "submitted")
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_non_admin_cannot_decide(self, make_user, submit_paper, set_status, fetch):
        _, owner = await make_user()
        created = await submit_paper(owner)

        r = await set_status(created["id"], owner, "accepted")

        assert r.status_code == 403
        submission = await fetch(Submission, uuid.UUID(created["id"]))
        assert submission.status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_submission(self, admin, set_status):
        _, admin_headers = admin
        r = await set_status(uuid.uuid4(), admin_headers, "accepted")
        assert r.status_code == 404


class TestRevisions:

    @pytest.mark.asyncio
    async def test_status_change_during_upload_is_a_conflict(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status,
        fake_file_host, fetch, db_session,
    ):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)
        submission_id = uuid.UUID(created["id"])
        await set_status(created["id"], admin_headers, "accepted_with_revision", "Tighten the proofs")

        async def reject_meanwhile():
            await _set_status_elsewhere(submission_id, "rejected")

        fake_file_host.on_upload = reject_meanwhile
        r = await _resubmit(client, created["id"], owner)

        assert r.status_code == 409
        assert r.json()["code"] == "conflict"
        submission = await fetch(Submission, submission_id)
        assert submission.status == "rejected"
        assert submission.current_version == 1
        assert submission.pdf_url == created["pdf_url"]
        versions = await db_session.execute(
            select(SubmissionVersion).where(SubmissionVersion.submission_id == submission_id)
        )
        assert versions.scalars().all() == []

    @pytest.mark.asyncio
    async def test_resubmission_archives_previous_version(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status, fetch, count_events,
        db_session,
    ):
        _, owner = await make_user()
        admin_user, admin_headers = admin
        created = await submit_paper(owner)
        original_url = created["pdf_url"]
        await set_status(created["id"], admin_headers, "accepted_with_revision", "Add related work")

        r = await _resubmit(client, created["id"], owner)

        assert r.status_code == 200, r.text
        body = r.json()
        assert body["version"] == 2
        assert body["total_versions"] == 1
        assert "/revisions/UCCICON26-01_v2_" in body["file_url"]

        submission = await fetch(Submission, uuid.UUID(created["id"]))
        assert submission.status == "pending_review"
        assert submission.current_version == 2
        assert submission.pdf_url == body["file_url"]
        assert submission.review_comments is None
        assert submission.reviewed_by is None
        assert submission.last_revision_at is not None

        result = await db_session.execute(
            select(SubmissionVersion)
            .where(SubmissionVersion.submission_id == submission.id)
            .order_by(SubmissionVersion.version)
        )
        archived = list(result.scalars().all())
        assert len(archived) == 1
        assert archived[0].version == 1
        assert archived[0].file_url == original_url
        assert archived[0].status == "accepted_with_revision"
        assert archived[0].admin_comments == "Add related work"
        assert archived[0].reviewed_by == admin_user.id
        assert await count_events(EventType.SUBMISSION_REVISED) == 1

    @pytest.mark.asyncio
    async def test_version_invariant_over_two_rounds(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status
    ):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)

        for round_number in (1, 2):
            await set_status(created["id"], admin_headers, "accepted_with_revision", f"Round {round_number}")
            r = await _resubmit(client, created["id"], owner)
            assert r.status_code == 200, r.text

        r = await set_status(created["id"], admin_headers, "accepted")
        assert r.status_code == 200

        history = await client.get(f"/api/v1/submissions/{created['id']}/versions", headers=owner)
        assert history.status_code == 200
        data = history.json()
        assert data["current_version"] == 3
        versions = data["versions"]
        assert [v["version"] for v in versions] == [1, 2, 3]
        assert [v["is_current"] for v in versions] == [False, False, True]
        assert [v["admin_comments"] for v in versions] == ["Round 1", "Round 2", None]
        assert versions[-1]["status"] == "accepted"

    @pytest.mark.asyncio
    async def test_resubmit_outside_revision_state(
        self, client: AsyncClient, make_user, submit_paper, fake_file_host
    ):
        _, owner = await make_user()
        created = await submit_paper(owner)
        uploads_before = len(fake_file_host.objects)

        r = await _resubmit(client, created["id"], owner)

        assert r.status_code == 409
        assert len(fake_file_host.objects) == uploads_before

    @pytest.mark.asyncio
    async def test_only_owner_can_resubmit(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status
    ):
        _, owner = await make_user()
        _, stranger = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)
        await set_status(created["id"], admin_headers, "accepted_with_revision", "Revise")

        r = await _resubmit(client, created["id"], stranger)
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_abstracts_cannot_be_revised(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status
    ):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner, submission_type="abstract")
        await set_status(created["id"], admin_headers, "accepted_with_revision", "Revise")

        r = await _resubmit(client, created["id"], owner)
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_revised_file_must_be_pdf(
        self, client: AsyncClient, make_user, admin, submit_paper, set_status, fetch
    ):
        _, owner = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)
        await set_status(created["id"], admin_headers, "accepted_with_revision", "Revise")

        r = await _resubmit(client, created["id"], owner, content=b"PK", name="rev.docx")

        assert r.status_code == 400
        submission = await fetch(Submission, uuid.UUID(created["id"]))
        assert submission.current_version == 1
        assert submission.status == "accepted_with_revision"

    @pytest.mark.asyncio
    async def test_history_is_private(self, client: AsyncClient, make_user, admin, submit_paper):
        _, owner = await make_user()
        _, stranger = await make_user()
        _, admin_headers = admin
        created = await submit_paper(owner)

        assert (
            await client.get(f"/api/v1/submissions/{created['id']}/versions", headers=stranger)
        ).status_code == 403
        assert (
            await client.get(f"/api/v1/submissions/{created['id']}/versions", headers=admin_headers)
        ).status_code == 200

