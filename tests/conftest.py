# tests/conftest.py

import os

# Settings are read once and cached; pin a predictable environment before
# anything from the package is imported.
os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_CHAT_ID"] = ""
os.environ["SEED_DEMO_DATA"] = "true"

import pytest
from fastapi.testclient import TestClient

from food_delivery.core.config import get_settings
from food_delivery.core.security import issue_token
from food_delivery.services.notifications import (
    MockNotificationService,
    NotificationDispatcher,
    reset_notification_service,
)
from food_delivery.services.persistence import PersistenceGateway

SQLITE_URL = "sqlite+aiosqlite://"
OPERATIONS_CHAT = -100123


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings and services around every test."""
    get_settings.cache_clear()
    reset_notification_service()
    yield
    get_settings.cache_clear()
    reset_notification_service()


@pytest.fixture
def channel():
    """Mock chat channel that never fails and never sleeps."""
    return MockNotificationService(failure_rate=0.0, min_latency=0.0, max_latency=0.0)


@pytest.fixture
def dispatcher(channel):
    return NotificationDispatcher(channel, operations_chat_id=OPERATIONS_CHAT)


@pytest.fixture
async def gateway():
    """Connected gateway on a fresh in-memory SQLite database, demo catalog seeded."""
    gw = PersistenceGateway(SQLITE_URL, seed_demo_data=True)
    assert await gw.connect()
    yield gw
    await gw.close()


@pytest.fixture
def degraded_gateway():
    """Gateway without a database URL: permanently in mock mode."""
    return PersistenceGateway(None)


@pytest.fixture
def user_token():
    return issue_token(42, email="customer@example.com")


@pytest.fixture
def auth_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture
def admin_headers():
    return {"X-Admin-API-Key": "test-admin-key"}


def build_client(gateway, dispatcher) -> TestClient:
    """App wired to the given collaborators. Use as a context manager."""
    from food_delivery.main import create_app
    return TestClient(create_app(gateway=gateway, dispatcher=dispatcher))


@pytest.fixture
def api(channel):
    """TestClient over a fresh in-memory database (connected during lifespan)."""
    dispatcher = NotificationDispatcher(channel, operations_chat_id=OPERATIONS_CHAT)
    with build_client(PersistenceGateway(SQLITE_URL), dispatcher) as client:
        yield client


@pytest.fixture
def degraded_api(channel):
    """TestClient with no database configured."""
    dispatcher = NotificationDispatcher(channel, operations_chat_id=OPERATIONS_CHAT)
    with build_client(PersistenceGateway(None), dispatcher) as client:
        yield client
