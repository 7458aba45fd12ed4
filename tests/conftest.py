"""
Pytest configuration and fixtures for testing.

Tests run against a throwaway SQLite database by default; set
``TEST_DATABASE_URL`` to run them against Postgres (see create_test_db.py).
Redis, RabbitMQ, the email API and Expo are replaced with in-process fakes.
"""
import fnmatch
import os
import tempfile
import pytest
import pytest_asyncio
from typing import AsyncGenerator

_TMP_DIR = tempfile.mkdtemp(prefix="eventshare-tests-")

# Settings are read at import time, so configure them before importing the app
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-entropy-1234567890")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/app.db")
os.environ.setdefault("MEDIA_ROOT", os.path.join(_TMP_DIR, "media"))
os.environ.setdefault("MEDIA_BASE_URL", "http://test/media-files")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("EVENT_BUS_ENABLED", "false")
os.environ.setdefault("PUSH_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from eventshare.main import app
from eventshare.cache import redis_client
from eventshare.core import security
from eventshare.core.rate_limit import limiter
from eventshare.db.models import Event, Invitation, User
from eventshare.db.session import Base, get_session
from eventshare.events import publisher
from eventshare.services import email_service as email_module
from eventshare.services import push_service as push_module
from eventshare.services import storage
from eventshare.services.push_service import PushResult
from tests.factories import create_event, create_user


TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/test.db")

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=NullPool,  # Disable connection pooling for tests
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class FakeCache:
    """Dict-backed stand-in for the Redis cache (TTLs are ignored)."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, expire=300):
        self.store[key] = value
        return True

    async def delete(self, key):
        self.store.pop(key, None)
        return True

    async def delete_pattern(self, pattern):
        keys = [k for k in self.store if fnmatch.fnmatch(k, pattern)]
        for key in keys:
            del self.store[key]
        return len(keys)

    async def exists(self, key):
        return key in self.store

    async def close(self):
        pass


class RecordingPublisher:
    def __init__(self):
        self.published = []

    async def __call__(self, routing_key, payload):
        self.published.append((routing_key, payload))
        return True

    def keys(self):
        return [key for key, _ in self.published]


class FakeEmailService:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_email(self, to, template, data):
        if self.fail:
            raise email_module.EmailDeliveryError("email API down")
        self.sent.append({"to": to, "template": template, "data": data})
        return True

    def last_code_for(self, email):
        for message in reversed(self.sent):
            if message["to"] == email and message["template"] == "verification_code":
                return message["data"]["code"]
        return None


class FakePushService:
    def __init__(self):
        self.calls = []
        self.invalid_tokens = []

    async def send_push(self, tokens, payload):
        self.calls.append((list(tokens), payload))
        invalid = [t for t in tokens if t in self.invalid_tokens]
        return PushResult(sent=len(tokens) - len(invalid), failed=len(invalid), invalid_tokens=invalid)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database for each test.
    Tables are dropped and recreated so tests never see each other's rows.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Session factory on the test engine, for code that opens its own sessions."""
    return TestSessionLocal


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client bound to the app, sharing the test's database session.
    """
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def fake_cache(monkeypatch) -> FakeCache:
    cache = FakeCache()
    monkeypatch.setattr(redis_client, "cache", cache)
    return cache


@pytest.fixture(autouse=True)
def published_events(monkeypatch) -> RecordingPublisher:
    """Capture domain events instead of talking to RabbitMQ."""
    recorder = RecordingPublisher()
    monkeypatch.setattr(publisher, "publish_event", recorder)
    return recorder


@pytest.fixture(autouse=True)
def email_outbox(monkeypatch) -> FakeEmailService:
    fake = FakeEmailService()
    monkeypatch.setattr(email_module, "email_service", fake)
    return fake


@pytest.fixture(autouse=True)
def push_outbox(monkeypatch) -> FakePushService:
    fake = FakePushService()
    monkeypatch.setattr(push_module, "push_service", fake)
    return fake


@pytest.fixture(autouse=True)
def media_store(monkeypatch, tmp_path) -> storage.LocalMediaStorage:
    store = storage.LocalMediaStorage(str(tmp_path / "media"), "http://test/media-files")
    monkeypatch.setattr(storage, "media_storage", store)
    return store


@pytest.fixture(autouse=True)
def mock_password_hashing(monkeypatch):
    """
    Mock bcrypt password hashing so tests do not pay for real key stretching.
    This fixture is autouse, so it applies to all tests automatically.
    """
    class MockPasswordContext:
        def hash(self, password: str) -> str:
            return f"$2b$12$mockedhash{password}"

        def verify(self, plain: str, hashed: str) -> bool:
            return hashed == f"$2b$12$mockedhash{plain}"

    monkeypatch.setattr(security, "pwd_context", MockPasswordContext())


@pytest.fixture(autouse=True)
def disable_rate_limiting(monkeypatch):
    """Disable rate limiting for all tests."""
    monkeypatch.setattr(limiter, "enabled", False)


@pytest_asyncio.fixture
async def alice(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Alice", "alice@example.com")


@pytest_asyncio.fixture
async def bob(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Bob", "bob@example.com")


@pytest_asyncio.fixture
async def carol(db_session: AsyncSession) -> User:
    return await create_user(db_session, "Carol", "carol@example.com")


@pytest_asyncio.fixture
async def private_event(db_session: AsyncSession, alice: User) -> Event:
    return await create_event(db_session, alice, "Private Dinner", is_private=True, share_token="a" * 40)


@pytest_asyncio.fixture
async def public_event(db_session: AsyncSession, alice: User) -> Event:
    return await create_event(db_session, alice, "Open Meetup", is_private=False, share_token="b" * 40)


@pytest_asyncio.fixture
async def pending_invitation(db_session: AsyncSession, private_event: Event, alice: User, bob: User) -> Invitation:
    invitation = Invitation(
        event_id=private_event.id,
        inviter_id=alice.id,
        invitee_id=bob.id,
        message="Come along",
    )
    db_session.add(invitation)
    await db_session.commit()
    await db_session.refresh(invitation)
    return invitation
