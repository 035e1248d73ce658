import os
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Configure test environment before the app is imported
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("SWEEP_INTERVAL_SECONDS", "0")

from pastebox.database import InMemoryStore  # noqa: E402
from pastebox.service import PasteService, get_service  # noqa: E402


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def service(store, clock):
    return PasteService(store, clock=clock)


@pytest.fixture
def app(service):
    from pastebox.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_service] = lambda: service
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
