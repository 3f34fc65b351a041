import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-bed-management")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_API_KEYS", '{"bed-board": "test-api-key"}')
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models as registered_models  # noqa: F401
from app.main import app
from app.core.permissions import Permissions
from app.core.tenant import RequestContext
from app.infrastructure.database import get_db, Base
from tests.factories import APP_ID, TENANT_ID, USER_ID, make_headers, make_token


@pytest.fixture(scope="function")
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database dependency override."""

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

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def context() -> RequestContext:
    return RequestContext(
        tenant_id=TENANT_ID,
        token="test-token",
        user_id=USER_ID,
        app_id=APP_ID,
        permissions=[Permissions.SYSTEM_ADMIN],
    )


@pytest.fixture(scope="function")
def auth_headers() -> dict:
    """Headers for a system administrator of the default tenant."""
    return make_headers(make_token())


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "beds: mark test as bed placement related"
    )
    config.addinivalue_line(
        "markers", "housekeeping: mark test as bed status and cleaning related"
    )
    config.addinivalue_line(
        "markers", "discharge: mark test as discharge planning related"
    )
    config.addinivalue_line(
        "markers", "features: mark test as feature flag related"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
