"""
Pytest Fixtures für Notification Manager Tests

Bietet:
- Steuerbare Uhr (FakeClock) für deterministische Zeitfenster
- In-Memory Settings Store und In-Memory SQLite Datenbank
- Aufzeichnende Kanal-Adapter statt Home Assistant
- Vorkonfigurierte NotificationManager-Instanzen
- FastAPI AsyncClient für API-Tests
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models.database import Base
from models.notification import (
    CHANNELS,
    ChannelResult,
    Notification,
    NotificationMetadata,
)
from services.notification_channels import ChannelRegistry
from services.notification_manager import NotificationManager
from services.settings_store import InMemorySettingsStore
from utils.config import settings
from utils.hooks import clear_hooks

# Tuesday, 12:00 local time (outside the default 22:00-07:00 quiet hours)
TUESDAY_NOON = datetime(2026, 10, 20, 12, 0)


# ============================================================================
# Isolation
# ============================================================================

@pytest.fixture(autouse=True)
def _isolate_hooks():
    """Ensure hooks are cleaned between tests."""
    clear_hooks()
    yield
    clear_hooks()


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Callable clock the tests move forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

    @property
    def ms(self) -> int:
        return int(self.now.timestamp() * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(TUESDAY_NOON)


# ============================================================================
# Channels
# ============================================================================

class RecordingChannel:
    """Channel adapter that remembers what it delivered."""

    def __init__(self, channel: str):
        self.channel = channel
        self.delivered: list[Notification] = []

    async def deliver(self, notification: Notification) -> ChannelResult:
        self.delivered.append(notification)
        return ChannelResult(success=True, channel=self.channel)


@pytest.fixture
def channel_spies() -> dict[str, RecordingChannel]:
    return {name: RecordingChannel(name) for name in CHANNELS}


@pytest.fixture
def channel_registry(channel_spies) -> ChannelRegistry:
    return ChannelRegistry(dict(channel_spies))


# ============================================================================
# Store / Database
# ============================================================================

@pytest.fixture
def memory_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def async_engine():
    """Create async SQLite engine for tests"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


# ============================================================================
# Manager
# ============================================================================

@pytest.fixture
async def manager(memory_store, channel_registry, clock) -> NotificationManager:
    """Initialized manager without the built-in default rules."""
    with patch.object(settings, "notification_default_rules_enabled", False):
        mgr = NotificationManager(store=memory_store, channels=channel_registry, clock=clock)
        await mgr.initialize()
    return mgr


@pytest.fixture
async def manager_with_defaults(memory_store, channel_registry, clock) -> NotificationManager:
    """Initialized manager with the four default rules installed."""
    with patch.object(settings, "notification_default_rules_enabled", True):
        mgr = NotificationManager(store=memory_store, channels=channel_registry, clock=clock)
        await mgr.initialize()
    return mgr


@pytest.fixture
def make_notification(clock):
    """Factory for enriched notifications used by the pure routing helpers."""
    counter = {"n": 0}

    def _make(
        title: str = "Test",
        message: str = "Nachricht",
        category: str = "general",
        source: str = "system",
        priority=None,
        **metadata,
    ) -> Notification:
        counter["n"] += 1
        return Notification(
            id=f"notif_test_{counter['n']}",
            timestamp=clock.ms,
            title=title,
            message=message,
            priority=priority,
            metadata=NotificationMetadata(category=category, source=source, **metadata),
        )

    return _make


# ============================================================================
# FastAPI Test Client
# ============================================================================

@pytest.fixture
async def app_with_manager(manager):
    """FastAPI app with the manager dependency overridden"""
    from main import app
    from services.notification_manager import get_notification_manager

    app.dependency_overrides[get_notification_manager] = lambda: manager

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app_with_manager) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API tests"""
    transport = ASGITransport(app=app_with_manager)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
