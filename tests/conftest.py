"""
Shared test fixtures for the CampusDash test suite.

Async throughout (aiosqlite + AsyncSession).
"""

import os
import sys
from typing import AsyncGenerator, Awaitable, Callable

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["ENVIRONMENT"] = "test"
# Cheap hashes keep the suite fast; production default stays at 12
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from campusdash.api.v1.deps import get_db
from campusdash.core.security import CredentialStore, TokenService
from campusdash.db.base import Base
from campusdash.main import app
from campusdash.models.user import User
from campusdash.services.dashboards import DashboardStore
from campusdash.services.users import UserDirectory

# Create a test engine for the entire session
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class FixedChartSource:
    """Deterministic stand-in for the random chart generator."""

    def weekly_activity(self) -> list[dict]:
        return [{"date": "Mon", "teachers": 1, "students": 2, "signups": 3}]

    def monthly_growth(self) -> list[dict]:
        return [{"month": "Jan", "growth": 10, "revenue": 1000}]

    def weekly_signups(self) -> int:
        return 7

    def teaching_stats(self, student_count: int) -> dict:
        return {
            "totalStudents": student_count,
            "activeStudents": student_count,
            "coursesTaught": 3,
            "averageGrade": "90.0",
        }


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db
app.state.chart_source = FixedChartSource()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def credentials() -> CredentialStore:
    return app.state.credentials


@pytest.fixture
def tokens() -> TokenService:
    return app.state.tokens


@pytest.fixture
def chart_source() -> FixedChartSource:
    return app.state.chart_source


@pytest.fixture
def directory(db_session: AsyncSession, credentials: CredentialStore) -> UserDirectory:
    return UserDirectory(db_session, credentials)


@pytest.fixture
def dashboards(db_session: AsyncSession, directory: UserDirectory) -> DashboardStore:
    return DashboardStore(db_session, directory)


# ── User factory ────────────────────────────────────────────────────
MakeUser = Callable[..., Awaitable[tuple[User, dict[str, str]]]]


@pytest.fixture
def make_user(directory: UserDirectory, tokens: TokenService) -> MakeUser:
    """Create a user and return it with ready-made auth headers."""
    counter = {"n": 0}

    async def _make(role: str = "student", email: str | None = None, password: str = "password123"):
        counter["n"] += 1
        user = await directory.create(
            name=f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@example.com",
            password=password,
            role=role,
        )
        headers = {"Authorization": f"Bearer {tokens.issue_for(user)}"}
        return user, headers

    return _make
