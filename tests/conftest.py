import json
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from asgi_lifespan import LifespanManager

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)
os.environ.setdefault("ANYIO_BACKEND", "asyncio")

TEST_BOT_TOKEN = "S3cr3t"

os.environ["TELEGRAM_BOT_TOKEN"] = TEST_BOT_TOKEN
os.environ["USER_STORE_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "development"

from app.main import app  # noqa: E402
from app.api.deps.user_store import get_user_store  # noqa: E402
from app.core.security import sign_init_data  # noqa: E402
from app.domain.repositories.memory_user_store import InMemoryUserStore  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def bot_token() -> str:
    return TEST_BOT_TOKEN


@pytest.fixture
def make_init_data(bot_token):
    """Build signed init data for a user dict, the way the Mini App host does."""

    def _make(user=None, auth_date=1700000000, secret=None, **extra):
        fields = {"auth_date": str(auth_date), "query_id": "AAHdF6IQAAAAAN0XohDhrOrc"}
        if user is not None:
            fields["user"] = user if isinstance(user, str) else json.dumps(user)
        fields.update(extra)
        return sign_init_data(fields, secret or bot_token)

    return _make


class StepClock:
    """Clock that advances one second on every reading."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    """Fresh in-memory store per test."""
    return InMemoryUserStore()


@pytest.fixture(autouse=True)
def override_user_store(user_store: InMemoryUserStore):
    """
    Route handlers get the per-test store instead of the one created at
    startup, so tests never share profiles.
    """
    app.dependency_overrides[get_user_store] = lambda: user_store
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client():
    """Shared HTTPX async client with FastAPI lifespan handling."""
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client
