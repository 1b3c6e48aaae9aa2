"""
Pytest configuration and fixtures.
"""

import os

# Settings are read at import time; keep the app off PostgreSQL in tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.auth.jwt import create_access_token
from src.models import Base
from src.schemas.auth import ActorRole, TokenPayload


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app with get_db bound to the test database."""
    from src.db import get_db
    from src.main import app

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin():
    return TokenPayload(user_id=1, role=ActorRole.ADMIN)


def auth_headers(user_id: int, role: str, supplier_id=None) -> dict:
    token = create_access_token(user_id, role, supplier_id=supplier_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    return auth_headers


@pytest.fixture
def admin_headers():
    return auth_headers(1, "admin")


@pytest.fixture
def service_headers():
    return auth_headers(50, "service")


@pytest.fixture
def supplier_headers():
    """Supplier 9 (matches the scenarios used across the tests)."""
    return auth_headers(20, "supplier", supplier_id=9)
