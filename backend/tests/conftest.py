"""
BookNet Backend — Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (mocked session/store, an
       in-memory database, seed helpers and an API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: Mock AsyncSession (no database needed)
    ├── mock_store:      AsyncMock honouring the CatalogStore interface
    ├── db_engine:       Fresh in-memory SQLite database with the full schema
    ├── db_session:      AsyncSession bound to db_engine
    ├── store:           SqlAlchemyCatalogStore over db_session
    ├── seed:            Helpers inserting users and books (returns ids)
    └── test_client:     HTTPX AsyncClient talking to the app over db_engine
"""

import os

# Override settings for testing BEFORE any booknet imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["REQUIRE_RETURN_BEFORE_APPROVAL"] = "true"
os.environ["CONFLICT_RETRY_ATTEMPTS"] = "2"

from typing import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from booknet.database import Base, get_db_session  # noqa: E402
from booknet.models import Book, User  # noqa: E402
from booknet.services.catalog_store import CatalogStore, SqlAlchemyCatalogStore  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Mocks
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_lookup(mock_db_session):
            mock_db_session.execute.side_effect = OperationalError(...)
            await SqlAlchemyCatalogStore(mock_db_session).get_book(1)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def mock_store():
    """An AsyncMock restricted to the CatalogStore interface."""
    return AsyncMock(spec=CatalogStore)


# ══════════════════════════════════════════════════════════════════════════
# In-memory database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    A fresh in-memory SQLite database per test.

    StaticPool keeps the single connection alive so every session in the
    test sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def store(db_session) -> SqlAlchemyCatalogStore:
    return SqlAlchemyCatalogStore(db_session)


class Seeder:
    """Inserts users and books directly and commits; every helper returns the new id."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, firstname: str, lastname: str = "Reader") -> int:
        user = User(
            firstname=firstname,
            lastname=lastname,
            email=f"{firstname.lower()}.{lastname.lower()}@booknet.test",
        )
        self.session.add(user)
        await self.session.commit()
        return user.id

    async def book(
        self,
        owner_id: int,
        title: str = "The Pragmatic Programmer",
        shareable: bool = True,
        archived: bool = False,
    ) -> int:
        book = Book(
            title=title,
            author_name="Andrew Hunt",
            isbn="978-0201616224",
            synopsis="",
            shareable=shareable,
            archived=archived,
            owner_id=owner_id,
        )
        self.session.add(book)
        await self.session.commit()
        return book.id


@pytest.fixture
def seed(db_session) -> Seeder:
    return Seeder(db_session)


# ══════════════════════════════════════════════════════════════════════════
# API client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_engine):
    """
    Provides an async HTTP test client for endpoint testing.

    Each request gets its own session on the test database, rolled back on
    error and closed afterwards, like get_db_session.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from booknet.main import app

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
