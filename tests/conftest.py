"""
Pytest fixtures for conference portal tests.

The whole suite runs against a temp-file SQLite database so the app's
sessions and the fixtures' sessions see the same data. External
collaborators (payment gateway, object storage) are replaced with
in-memory fakes through FastAPI dependency overrides.
"""

import json
import os
import tempfile
import uuid
from typing import AsyncGenerator, Awaitable, Callable, Dict, List, Optional

# Use file-based SQLite so all connections share the same DB (in-memory is per-connection)
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["EASEBUZZ_MERCHANT_KEY"] = "TESTKEY123"
os.environ["EASEBUZZ_MERCHANT_SALT"] = "TESTSALT456"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["BACKEND_URL"] = "http://backend.test"

# Force config reload so the app uses the test DB
from confportal.config import get_settings  # noqa: E402

get_settings.cache_clear()

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import func, select, update  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from confportal.api.deps import get_file_host, get_gateway  # noqa: E402
from confportal.database import async_session_maker, engine  # noqa: E402
from confportal.engines.payments.gateway import GatewaySession  # noqa: E402
from confportal.engines.payments.signature import PaymentFields, reverse_hash  # noqa: E402
from confportal.kernel.errors import GatewayError  # noqa: E402
from confportal.kernel.identity.jwt import JWTManager  # noqa: E402
from confportal.kernel.identity.password import hash_password  # noqa: E402
from confportal.kernel.models import Base, EventLog, EventType, User, UserRole  # noqa: E402
from confportal.main import app  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
TEST_PASSWORD = "Passw0rd123"

_password_hash: Optional[str] = None


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp DB file after test run."""
    for suffix in ("", "-wal", "-shm"):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            os.unlink(path)


class FakeGateway:
    """Records initiation forms and answers like a healthy gateway."""

    def __init__(self):
        self.forms: List[Dict[str, str]] = []
        self.fail = False

    async def initiate(self, form: Dict[str, str]) -> GatewaySession:
        if self.fail:
            raise GatewayError()
        self.forms.append(dict(form))
        access_key = f"ak_{form['txnid']}"
        return GatewaySession(
            access_key=access_key,
            payment_url=f"https://testpay.easebuzz.in/pay/{access_key}",
        )

    @property
    def last_form(self) -> Dict[str, str]:
        return self.forms[-1]


class FakeFileHost:
    """Keeps uploads in memory and returns deterministic URLs."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        # Awaited after the object is stored, before the URL is returned
        self.on_upload: Optional[Callable[[], Awaitable[None]]] = None

    async def upload(self, data: bytes, folder: str, public_id: str, content_type: str) -> str:
        key = f"{folder}/{public_id}"
        self.objects[key] = data
        if self.on_upload is not None:
            await self.on_upload()
        return f"https://files.test/{key}"


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def fake_file_host() -> FakeFileHost:
    return FakeFileHost()


@pytest_asyncio.fixture(autouse=True)
async def _schema():
    """Fresh tables for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(fake_gateway, fake_file_host):
    """Async client against the app with fake collaborators."""
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_file_host] = lambda: fake_file_host
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_gateway, None)
        app.dependency_overrides.pop(get_file_host, None)


def auth_headers(user: User, role: Optional[str] = None) -> Dict[str, str]:
    token = JWTManager().create_access_token(user.id, user.email, role)
    return {"Authorization": f"Bearer {token.access_token}"}


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: insert a user and return (user, auth headers)."""

    async def _make(
        role: Optional[UserRole] = UserRole.STUDENT,
        email: Optional[str] = None,
        full_name: str = "Test Author",
        institution: Optional[str] = None,
        token_role: Optional[str] = None,
    ):
        global _password_hash
        if _password_hash is None:
            _password_hash = hash_password(TEST_PASSWORD)
        user = User(
            id=uuid.uuid4(),
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=_password_hash,
            full_name=full_name,
            phone="9876543210",
            institution=institution,
            role=role.value if role else None,
        )
        db_session.add(user)
        await db_session.commit()
        if role is None:
            # The column default would otherwise fill in a role
            await db_session.execute(
                update(User).where(User.id == user.id).values(role=None)
            )
            await db_session.commit()
        await db_session.refresh(user)
        return user, auth_headers(user, token_role)

    return _make


@pytest_asyncio.fixture
async def admin(make_user):
    """Admin by user record role; the token carries no role claim."""
    return await make_user(role=UserRole.ADMIN, full_name="Review Admin")


@pytest.fixture
def submit_paper(client: AsyncClient):
    """Factory: create a submission through the API and return its JSON."""

    async def _submit(headers, submission_type: str = "fullpaper", title: str = "On Testing"):
        r = await client.post(
            "/api/v1/submissions",
            data={
                "title": title,
                "authors": json.dumps([{"name": "Test Author", "affiliation": "UCC"}]),
                "submission_type": submission_type,
            },
            files={"file": ("paper.pdf", PDF_BYTES, "application/pdf")},
            headers=headers,
        )
        assert r.status_code == 201, r.text
        return r.json()

    return _submit


@pytest.fixture
def set_status(client: AsyncClient):
    """Factory: admin review decision through the API."""

    async def _set(submission_id, headers, status: str, comments: Optional[str] = None):
        body = {"status": status}
        if comments is not None:
            body["review_comments"] = comments
        return await client.patch(
            f"/api/v1/admin/submissions/{submission_id}/status",
            json=body,
            headers=headers,
        )

    return _set


@pytest.fixture
def callback_form(settings):
    """Factory: a gateway callback form signed with the test salt."""

    def _form(
        initiation_form: Dict[str, str],
        status: str = "success",
        amount: Optional[str] = None,
        tamper: bool = False,
    ) -> Dict[str, str]:
        fields = PaymentFields(
            txnid=initiation_form["txnid"],
            amount=amount or initiation_form["amount"],
            productinfo=initiation_form["productinfo"],
            firstname=initiation_form["firstname"],
            email=initiation_form["email"],
        )
        signature = reverse_hash(
            settings.easebuzz_merchant_key,
            settings.easebuzz_merchant_salt,
            status,
            fields,
        )
        if tamper:
            signature = "0" * len(signature)
        return {
            "txnid": fields.txnid,
            "amount": fields.amount,
            "productinfo": fields.productinfo,
            "firstname": fields.firstname,
            "email": fields.email,
            "status": status,
            "hash": signature,
        }

    return _form


@pytest.fixture
def fetch(db_session: AsyncSession):
    """Re-read a row as the API left it, bypassing the identity map."""

    async def _fetch(model, ident):
        await db_session.commit()
        return await db_session.get(model, ident, populate_existing=True)

    return _fetch


@pytest.fixture
def count_events(db_session: AsyncSession):
    """Number of audit rows of one event type."""

    async def _count(event_type: EventType) -> int:
        await db_session.commit()
        result = await db_session.execute(
            select(func.count(EventLog.id)).where(EventLog.event_type == event_type.value)
        )
        return result.scalar_one()

    return _count
