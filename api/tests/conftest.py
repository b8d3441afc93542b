"""Shared fixtures: a throwaway SQLite database per test and an API client.

Each test gets its own database file under tmp_path so sessions in the same
test can run concurrently against real locking (scenario tests for the
reputation update rely on that).
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trustradar.database import get_db
from trustradar.main import app
from trustradar.models import Base, Endpoint, EndpointTest


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'trustradar.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """httpx client bound to the app, with get_db pointed at the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_tests(now):
    """Build an in-memory window of EndpointTest rows, newest first.

    Tests are spread evenly between now and `age_days` ago. The first
    `failures` tests (newest) fail without a sample.
    """

    def _make(count, failures=0, latency_ms=150, age_days=40.0, sample='{"name": "agent"}'):
        tests = []
        step = timedelta(days=age_days) / max(1, count - 1)
        for i in range(count):
            failed = i < failures
            tests.append(
                EndpointTest(
                    tested_at=now - step * i,
                    is_successful=not failed,
                    status_code=0 if failed else 200,
                    response_time_ms=None if failed else latency_ms,
                    response_sample=None if failed else sample,
                )
            )
        return tests

    return _make


@pytest.fixture
async def endpoint(db):
    ep = Endpoint(url="https://agent.example.com", name="Example Agent")
    db.add(ep)
    await db.commit()
    return ep
