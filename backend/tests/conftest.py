from __future__ import annotations
from datetime import datetime, timezone
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from fitcomp.main import app
from fitcomp.db import Base, get_session
from fitcomp.clock import get_now
from fitcomp.security import make_access_token
import fitcomp.models.competition  # register tables
import fitcomp.models.submission
import fitcomp.models.user_stats

# A Sunday, so the first competition week starts on day 0
START = datetime(2025, 1, 5, 0, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime):
        self.now = now


@pytest.fixture
def clock():
    return Clock(START)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory, clock):
    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_now] = lambda: clock.now
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    """auth("alice", tz="America/New_York") -> request headers for that user."""
    def _headers(user_id: str, name: str | None = None, tz: str | None = None) -> dict[str, str]:
        hdrs = {"Authorization": f"Bearer {make_access_token(user_id, name=name or user_id.title())}"}
        if tz:
            hdrs["X-Client-Timezone"] = tz
        return hdrs
    return _headers
