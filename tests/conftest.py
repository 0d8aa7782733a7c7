"""Shared test fixtures for SlotBook API tests.

Uses an in-memory SQLite async engine so tests run without PostgreSQL.
The clock is pinned and the email notifier is replaced with a mock.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SENDGRID_API_KEY", "")

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.deps import get_clock, get_email_service
from app.main import app

# Import all models to ensure they're registered with Base.metadata
from app.models.user import UserRole
from app.models.availability import AvailabilityRule  # noqa: F401
from app.models.appointment import Appointment  # noqa: F401
from tests.helpers import NOW, add_rule, create_user


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
TestSession = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with TestSession() as session:
        yield session


@pytest.fixture
def notifier():
    """Stand-in for the SendGrid email service."""
    mock = MagicMock()
    mock.send_appointment_confirmation = AsyncMock(return_value=True)
    return mock


@pytest_asyncio.fixture
async def client(notifier):
    """Async HTTP test client with a pinned clock and mocked notifier."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    app.dependency_overrides[get_email_service] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def db():
    """Direct DB session for test setup/assertions."""
    async with TestSession() as session:
        yield session


@pytest_asyncio.fixture
async def provider(db):
    return await create_user(db, "provider@example.com", "Dr. Ana", UserRole.PROVIDER)


@pytest_asyncio.fixture
async def other_provider(db):
    return await create_user(db, "other@example.com", "Dr. Bruno", UserRole.PROVIDER)


@pytest_asyncio.fixture
async def customer(db):
    return await create_user(db, "client@example.com", "Carla Client", UserRole.CLIENT)


@pytest_asyncio.fixture
async def stranger(db):
    return await create_user(db, "stranger@example.com", "Sam Stranger", UserRole.CLIENT)


@pytest_asyncio.fixture
async def admin(db):
    return await create_user(db, "admin@example.com", "Ada Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def monday_rule(db, provider):
    """Monday 09:00-12:00 in 30 minute slots, UTC."""
    return await add_rule(db, provider)
