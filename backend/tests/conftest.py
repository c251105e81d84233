"""Pytest configuration and fixtures for BBM Monitor tests.

Every test gets its own in-memory SQLite database. The app's `get_db`
dependency is overridden to hand out the test session, so requests and
assertions see the same data.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bbm.auth.jwt import create_access_token
from bbm.auth.password import hash_password
from bbm.database import Base, get_db
from bbm.main import app
from bbm.models.enums import Location, UserRole
from bbm.models.user import User

TEST_PASSWORD = "testpassword123"


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy own BEGIN so SAVEPOINTs work on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the database dependency overridden."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

async def make_user(
    db: AsyncSession,
    email: str,
    name: str,
    role: UserRole = UserRole.OPERATIONAL,
    location: Location | None = None,
    password: str = TEST_PASSWORD,
    is_active: bool = True,
) -> User:
    user = User(
        email=email,
        name=name,
        hashed_password=hash_password(password),
        role=role,
        location=location,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        location=user.location.value if user.location else None,
    )


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", "Admin", role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def operator_user(db_session: AsyncSession) -> User:
    """Operational user assigned to GENSET."""
    return await make_user(
        db_session, "genset@example.com", "Genset Operator", location=Location.GENSET
    )


@pytest_asyncio.fixture
async def roaming_user(db_session: AsyncSession) -> User:
    """Operational user without an assigned location."""
    return await make_user(db_session, "roaming@example.com", "Roaming Operator")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return bearer(admin_user)


@pytest.fixture
def operator_headers(operator_user: User) -> dict:
    return bearer(operator_user)


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "auth: Authentication tests")
    config.addinivalue_line("markers", "integration: Integration tests")
