"""
Shared fixtures for Resolve backend integration tests.

Each test gets a fresh in-memory SQLite database (aiosqlite) and an httpx
AsyncClient wired to the FastAPI app.  The identity provider, object store,
mailer, Stripe client and insight service are replaced through
``app.dependency_overrides`` with in-process fakes, so no test talks to the
network.
"""
from __future__ import annotations

import os
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine do not point at Postgres.
TEST_DATABASE_URL = "sqlite+aiosqlite://"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from resolve.database import Base, get_db  # noqa: E402
from resolve.errors import NotFound, Unauthorized, UpstreamFailure  # noqa: E402
from resolve.main import app  # noqa: E402
from resolve.models.database_models import Role, User  # noqa: E402
from resolve.services.billing import get_stripe_client  # noqa: E402
from resolve.services.email_service import Mailer, get_mailer  # noqa: E402
from resolve.services.identity import IdentityUser, get_identity_provider  # noqa: E402
from resolve.services.insights import LegalInsightsService, get_insights_service  # noqa: E402
from resolve.services.storage import StoredObject, get_object_store  # noqa: E402


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------

USER_TOKEN = "token-user-1"
USER2_TOKEN = "token-user-2"
ADMIN_TOKEN = "token-admin"
MODERATOR_TOKEN = "token-moderator"

IDENTITIES = {
    USER_TOKEN: IdentityUser(
        id="user-1",
        email="test1@example.com",
        user_metadata={"first_name": "Test", "last_name": "User"},
    ),
    USER2_TOKEN: IdentityUser(id="user-2", email="test2@example.com", user_metadata={"username": "tradie2"}),
    ADMIN_TOKEN: IdentityUser(id="admin-1", email="admin@example.com"),
    MODERATOR_TOKEN: IdentityUser(id="mod-1", email="mod@example.com"),
}

ADMIN_PASSWORD = "correct-horse"


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


AUTH_HEADERS = bearer(USER_TOKEN)
AUTH_HEADERS_USER2 = bearer(USER2_TOKEN)
ADMIN_HEADERS = bearer(ADMIN_TOKEN)
MODERATOR_HEADERS = bearer(MODERATOR_TOKEN)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeIdentityProvider:
    """Resolves the fixed tokens above; anything else is rejected."""

    def __init__(self) -> None:
        self.signed_out: List[str] = []

    async def get_user(self, token: str) -> IdentityUser:
        identity = IDENTITIES.get(token)
        if identity is None:
            raise Unauthorized("Invalid or expired token")
        return identity

    async def sign_in_with_password(self, email: str, password: str) -> Tuple[str, IdentityUser]:
        for token, identity in IDENTITIES.items():
            if identity.email == email and password == ADMIN_PASSWORD:
                return token, identity
        raise Unauthorized("Invalid email or password")

    async def sign_out(self, token: str) -> bool:
        self.signed_out.append(token)
        return True


class FakeObjectStore:
    """In-memory bucket that records every call."""

    def __init__(self) -> None:
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_delete = False

    async def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        self.calls.append(("upload", path))
        self.objects[path] = (data, content_type)
        return StoredObject(path=path, url=f"https://storage.test/{path}?sig=1")

    async def download(self, path: str) -> bytes:
        self.calls.append(("download", path))
        if path not in self.objects:
            raise NotFound("File not found in storage")
        return self.objects[path][0]

    async def delete(self, path: str) -> None:
        self.calls.append(("delete", path))
        if self.fail_delete:
            raise UpstreamFailure("Delete failed: storage returned 500")
        self.objects.pop(path, None)


class FakeMailer(Mailer):
    """Captures messages instead of talking to SMTP."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []

    def send(self, to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        self.sent.append({"to": to_email, "subject": subject, "html": html_body})
        return True


class FakeStripe:
    def __init__(self) -> None:
        self.intents: List[Dict] = []
        self.customers: List[Dict] = []
        self.subscriptions: Dict[str, Dict] = {}

    async def create_payment_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> Dict:
        intent = {
            "id": f"pi_{len(self.intents) + 1}",
            "client_secret": f"pi_{len(self.intents) + 1}_secret",
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
        }
        self.intents.append(intent)
        return intent

    async def create_customer(self, email: str, name: str, metadata: Dict[str, str]) -> Dict:
        customer = {"id": f"cus_{len(self.customers) + 1}", "email": email, "name": name, "metadata": metadata}
        self.customers.append(customer)
        return customer

    async def create_subscription(self, customer_id: str, metadata: Dict[str, str]) -> Dict:
        sub_id = f"sub_{len(self.subscriptions) + 1}"
        subscription = {
            "id": sub_id,
            "status": "incomplete",
            "client_secret": f"{sub_id}_secret",
            "customer": customer_id,
            "metadata": metadata,
        }
        self.subscriptions[sub_id] = subscription
        return subscription

    async def retrieve_subscription(self, subscription_id: str) -> Dict:
        return self.subscriptions.get(subscription_id) or {
            "id": subscription_id,
            "status": "active",
            "client_secret": None,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def create_user(session: AsyncSession, user_id: str, role: Role = Role.USER, **fields) -> User:
    """Insert a local user row directly (e.g. to give it a role)."""
    email = next((i.email for i in IDENTITIES.values() if i.id == user_id), f"{user_id}@example.com")
    user = User(id=user_id, email=email, role=role.value, **fields)
    session.add(user)
    await session.flush()
    return user


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A session on a brand-new in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()

    await engine.dispose()


@pytest.fixture
def idp() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def stripe() -> FakeStripe:
    return FakeStripe()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    idp: FakeIdentityProvider,
    store: FakeObjectStore,
    mailer: FakeMailer,
    stripe: FakeStripe,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB dependency
    overridden to use the per-test session.  Admin and moderator accounts
    are seeded so their tokens carry the right role.
    """
    await create_user(db_session, "admin-1", Role.ADMIN)
    await create_user(db_session, "mod-1", Role.MODERATOR)
    await db_session.commit()

    async def _override_get_db():
        yield db_session
        await db_session.commit()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: idp
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_stripe_client] = lambda: stripe
    app.dependency_overrides[get_insights_service] = lambda: LegalInsightsService(api_key="")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
