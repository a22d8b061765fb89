"""
Centralized Test Configuration.

Each test gets a fresh in-memory SQLite database and an in-memory Redis
stand-in; get_db is overridden and the Redis client is patched to use them.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.permissions import default_permissions, merge_permissions
from backend.app.core.security import get_password_hash
from backend.app.models.enums import UserRole
from backend.app.models.user import User
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

ADMIN_PASSWORD = "admin123"
STAFF_PASSWORD = "staff123"


def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
async def engine():
    """Fresh database per test: create tables, yield, drop."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(test_engine.sync_engine, "connect", set_sqlite_pragma)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
async def client(session_factory, mock_redis, monkeypatch):
    """Async client wired to the per-test database and mock Redis."""
    # Patch the global redis client used by token revocation
    monkeypatch.setattr(redis_client_module, "redis_client", mock_redis)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def create_user(session_factory):
    """Factory inserting a user directly, with the role's default permissions."""

    async def _create_user(
        username,
        password="password123",
        role=UserRole.STAFF,
        permissions=None,
        is_active=True
    ):
        async with session_factory() as session:
            user = User(
                email=f"{username}@test.com",
                username=username,
                full_name=username.title(),
                hashed_password=get_password_hash(password),
                role=role,
                is_active=is_active,
                permissions=merge_permissions(default_permissions(role), permissions)
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _create_user


@pytest.fixture
def login(client):
    """Log in and return ready-to-use Authorization headers."""

    async def _login(username, password):
        response = await client.post("/v1/auth/login", json={
            "username": username,
            "password": password
        })
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest.fixture
async def admin_user(create_user):
    return await create_user("admin", password=ADMIN_PASSWORD, role=UserRole.ADMIN)


@pytest.fixture
async def admin_headers(admin_user, login):
    return await login("admin", ADMIN_PASSWORD)


@pytest.fixture
async def staff_user(create_user):
    return await create_user("staff", password=STAFF_PASSWORD, role=UserRole.STAFF)


@pytest.fixture
async def staff_headers(staff_user, login):
    return await login("staff", STAFF_PASSWORD)
