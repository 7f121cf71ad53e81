"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite). StaticPool
   keeps the single connection alive, so every session sees the same data.
2. The schema is created straight from the ORM metadata (Base.metadata).
3. The app's get_db dependency is overridden to hand out that session,
   and the email sender is replaced by a recorder.

No Postgres or Redis is needed. Without Redis, publish_event and the
rate limiter are no-ops (the lifespan never runs under ASGITransport).
"""

import os

os.environ.setdefault("TRELLONE_ENVIRONMENT", "test")
os.environ.setdefault("TRELLONE_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TRELLONE_BCRYPT_ROUNDS", "4")

import uuid  # noqa: E402
from dataclasses import dataclass, field  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from trellone.db.engine import get_db  # noqa: E402
from trellone.db.models import Base  # noqa: E402
from trellone.main import app  # noqa: E402
from trellone.services.email import EmailSender, get_email_sender  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"
PASSWORD = "Secret123!"


@dataclass
class SentEmail:
    kind: str
    to: str
    token: str


class RecordingEmailSender(EmailSender):
    """Captures outgoing links instead of calling the Resend API."""

    def __init__(self):
        super().__init__(api_key="")
        self.sent: list[SentEmail] = []

    async def send_verify_register_email(self, to_address: str, token: str) -> bool:
        self.sent.append(SentEmail("verify", to_address, token))
        return True

    async def send_forgot_password_email(self, to_address: str, token: str) -> bool:
        self.sent.append(SentEmail("forgot_password", to_address, token))
        return True

    def last(self, kind: str, to: str | None = None) -> SentEmail:
        matches = [m for m in self.sent if m.kind == kind and (to is None or m.to == to)]
        assert matches, f"no {kind} email sent"
        return matches[-1]


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a throwaway in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session = AsyncSession(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture()
def email_sender():
    return RecordingEmailSender()


@pytest_asyncio.fixture()
async def client(db_session, email_sender):
    """HTTP client with get_db and the email sender overridden.

    Learn: Auth is NOT overridden. Tests register and log in through the
    real endpoints and send the access token as a Bearer header.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ─── Account helpers ────────────────────────────────────


@dataclass
class Account:
    user_id: str
    email: str
    access_token: str
    refresh_token: str
    headers: dict = field(default_factory=dict)


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


async def register(client, email: str, password: str = PASSWORD, display_name=None):
    return await client.post(
        "/api/v1/auth/register",
        json={
            "email": email,
            "password": password,
            "confirm_password": password,
            "display_name": display_name,
        },
    )


async def login(client, email: str, password: str = PASSWORD) -> Account:
    r = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    tokens = r.json()["result"]
    me = await client.get(
        "/api/v1/users/me",
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )
    return Account(
        user_id=me.json()["result"]["id"],
        email=email,
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
        headers={"Authorization": f"Bearer {tokens['access_token']}"},
    )


async def create_account(client, email_sender, prefix="user", verified=True) -> Account:
    """Register, optionally verify the email, and log in."""
    email = unique_email(prefix)
    r = await register(client, email)
    assert r.status_code == 201, r.text
    if verified:
        token = email_sender.last("verify", email).token
        r = await client.post("/api/v1/auth/verify-email", json={"email_verify_token": token})
        assert r.status_code == 200, r.text
    return await login(client, email)


@pytest_asyncio.fixture()
async def alice(client, email_sender) -> Account:
    return await create_account(client, email_sender, "alice")


@pytest_asyncio.fixture()
async def bob(client, email_sender) -> Account:
    return await create_account(client, email_sender, "bob")


# ─── Board helpers ──────────────────────────────────────


async def create_board(client, account: Account, title="Roadmap", board_type="private") -> dict:
    r = await client.post(
        "/api/v1/boards",
        json={"title": title, "description": "", "type": board_type},
        headers=account.headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["result"]


async def create_column(client, account: Account, board_id: str, title="Todo") -> dict:
    r = await client.post(
        "/api/v1/columns",
        json={"board_id": board_id, "title": title},
        headers=account.headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["result"]


async def create_card(client, account: Account, column_id: str, title="Card") -> dict:
    r = await client.post(
        "/api/v1/cards",
        json={"column_id": column_id, "title": title},
        headers=account.headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["result"]


async def get_board(client, account: Account, board_id: str) -> dict:
    r = await client.get(f"/api/v1/boards/{board_id}", headers=account.headers)
    assert r.status_code == 200, r.text
    return r.json()["result"]
