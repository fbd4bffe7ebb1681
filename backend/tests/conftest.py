# backend/tests/conftest.py
import os

# Settings are read at import time; give the test run its own values first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")
os.environ.setdefault("WEBAUTHN_RP_ID", "localhost")
os.environ.setdefault("WEBAUTHN_ORIGIN", "http://localhost:3000")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nottu.core.custom_jwt_strategy import SessionJWTStrategy, get_session_strategy  # noqa: E402
from nottu.db.base import Base  # noqa: E402
from nottu.db.session import get_async_session  # noqa: E402
from nottu.main import app as fastapi_app  # noqa: E402
from nottu.services.passkey_service import RelyingPartyConfig  # noqa: E402

# In-memory SQLite by default; point TEST_DATABASE_URL at PostgreSQL to run
# the same suite against the production dialect.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Creates/Disposes an async engine FOR EACH TEST FUNCTION."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Yields a database session per function, using the function-scoped engine."""
    TestSessionFactory = async_sessionmaker(
        test_engine, expire_on_commit=False, class_=AsyncSession
    )
    async with TestSessionFactory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@pytest_asyncio.fixture(scope="function")
async def test_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Creates an httpx AsyncClient using ASGITransport for testing the FastAPI app.
    Injects the function-scoped test database session.
    """

    async def override_get_async_session_for_test() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    fastapi_app.dependency_overrides[get_async_session] = override_get_async_session_for_test

    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app), base_url="http://test"
    ) as client:
        yield client

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def rp_config() -> RelyingPartyConfig:
    return RelyingPartyConfig(
        rp_id="localhost",
        rp_name="Nottu",
        origin="http://localhost:3000",
        challenge_ttl_seconds=300,
    )


@pytest.fixture
def session_strategy() -> SessionJWTStrategy:
    return get_session_strategy()
