"""
Pytest configuration and fixtures
"""

import os
import pytest
import pytest_asyncio

# Set test environment variables before importing app modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient

from call_ingest.core.config import Settings
from call_ingest.db.adapters.memory import MemoryStoreAdapter
from call_ingest.db.gateway import PersistenceGateway
from call_ingest.db.repository import CallEventRepository
from call_ingest.services.background import BackgroundTaskRunner
from call_ingest.services.cache_service import CacheService
from call_ingest.services.metrics import QueryMetrics
from call_ingest.services.notification_service import NotificationService
from call_ingest.services.tool_responses import ToolResponseBuilder
from call_ingest.services.webhook_router import WebhookRouter


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Small cache driven by the fake clock"""
    return CacheService(max_size=3, default_ttl=10.0, sweep_interval=60.0, clock=clock)


@pytest.fixture
def app_settings():
    """Settings for an isolated test app: memory store, SMS simulation, no limits"""
    return Settings(
        environment="test",
        debug=False,
        supabase_url=None,
        supabase_service_role_key=None,
        twilio_account_sid=None,
        twilio_auth_token=None,
        alert_primary_phone="+15145550001",
        alert_secondary_phone="+15145550002",
        vapi_server_secret=None,
        webhook_rate_limit_per_minute=0,
    )


@pytest_asyncio.fixture
async def store():
    """Connected in-memory store"""
    adapter = MemoryStoreAdapter()
    await adapter.connect()
    yield adapter
    await adapter.disconnect()


@pytest.fixture
def metrics():
    return QueryMetrics(max_entries=100, slow_threshold_ms=100.0)


@pytest.fixture
def gateway(store, metrics):
    """Gateway over the memory store with a roomy real-time cache"""
    return PersistenceGateway(
        store,
        CacheService(max_size=100, default_ttl=60.0),
        metrics,
        cache_ttl=60.0,
        aggregate_ttl=60.0,
        aggregate_max_rows=50,
        default_page_size=2,
    )


@pytest.fixture
def repository(gateway, app_settings):
    return CallEventRepository(gateway, app_settings)


@pytest.fixture
def tool_builder():
    return ToolResponseBuilder(CacheService(max_size=100, default_ttl=300.0), ttl=300.0)


@pytest.fixture
def webhook_router(tool_builder, repository, app_settings):
    """Router wired to real components over the memory store"""
    return WebhookRouter(
        tool_builder,
        repository,
        BackgroundTaskRunner(),
        tool_builder.cache,
        notifier=NotificationService(repository, app_settings),
    )


@pytest.fixture
def memory_store():
    """Unconnected memory store; the app lifespan connects it"""
    return MemoryStoreAdapter()


@pytest.fixture
def test_app(app_settings, memory_store):
    from call_ingest.main import create_app
    return create_app(app_settings, store=memory_store)


@pytest.fixture
def test_client(test_app):
    """Fixture for test client"""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
def quote_event():
    """Tool-calls event asking for an inspection quote"""
    return {
        "type": "tool-calls",
        "toolCalls": [
            {
                "id": "abc",
                "function": {"name": "getQuote", "arguments": {"serviceType": "inspection"}},
            }
        ],
    }
