"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at an in-memory database
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENV_MODE"] = "development"
os.environ["MOCK_PUSH_FAILURE_RATE"] = "0"

from typing import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tabletrack.database import Base, get_db
from tabletrack.main import app
from tabletrack.models import MappingSource
from tabletrack.services.notifications import MockPushSink, NotificationDispatcher, get_push_sink
from tabletrack.services.tracking import StatusTransitionEngine, SubmissionGuard

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncIterator[AsyncSession]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def push_sink() -> MockPushSink:
    """The development push sink, emptied for each test."""
    sink = get_push_sink()
    assert isinstance(sink, MockPushSink)
    sink.clear()
    yield sink
    sink.clear()


@pytest.fixture
def dispatcher(push_sink) -> NotificationDispatcher:
    return NotificationDispatcher(sink=push_sink)


@pytest.fixture
def guard(dispatcher) -> SubmissionGuard:
    return SubmissionGuard(dispatcher=dispatcher)


@pytest.fixture
def transitions(dispatcher) -> StatusTransitionEngine:
    return StatusTransitionEngine(dispatcher=dispatcher)


@pytest_asyncio.fixture(scope="function")
async def client(session_maker, push_sink) -> AsyncIterator[AsyncClient]:
    """Create a test client with database override."""
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def seated_order(db_session, guard):
    """Order 1001 submitted by a customer at table P3."""
    return await guard.submit(db_session, "P3", "1001", source=MappingSource.CUSTOMER)
