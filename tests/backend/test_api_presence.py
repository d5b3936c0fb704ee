"""
Tests für die Presence API (api/routes/presence.py)

Reports go through the real PresenceService; the notification manager reads
the same instance, so a departure changes how notifications are gated.
"""

from unittest.mock import AsyncMock

import pytest

from services.presence_service import PresenceService, get_presence_service
from utils.hooks import register_hook

API = "/api/presence"


@pytest.fixture
def presence(app_with_manager, manager) -> PresenceService:
    service = PresenceService()
    manager.presence = service
    app_with_manager.dependency_overrides[get_presence_service] = lambda: service
    return service


@pytest.mark.integration
class TestPresenceEndpoints:
    @pytest.mark.asyncio
    async def test_status_unknown_without_reports(self, async_client, presence):
        response = await async_client.get(f"{API}/status")

        assert response.status_code == 200
        assert response.json() == {"status": "unknown", "home": [], "tracked": 0}

    @pytest.mark.asyncio
    async def test_arrive_and_leave(self, async_client, presence):
        response = await async_client.post(f"{API}/anna/arrive", json={"name": "Anna"})
        assert response.status_code == 200
        assert response.json()["status"] == "home"
        assert response.json()["home"] == ["anna"]

        response = await async_client.post(f"{API}/anna/leave")
        assert response.status_code == 200
        assert response.json()["status"] == "away"

        assert presence.get_status()["status"] == "away"

    @pytest.mark.asyncio
    async def test_arrive_without_body(self, async_client, presence):
        response = await async_client.post(f"{API}/ben/arrive")

        assert response.status_code == 200
        assert response.json()["tracked"] == 1

    @pytest.mark.asyncio
    async def test_reports_fire_presence_hooks(self, async_client, presence):
        first = AsyncMock(return_value=None)
        last = AsyncMock(return_value=None)
        register_hook("presence_first_arrived", first)
        register_hook("presence_last_left", last)

        await async_client.post(f"{API}/anna/arrive")
        await async_client.post(f"{API}/anna/leave")

        first.assert_awaited_once_with(member_id="anna")
        last.assert_awaited_once_with(member_id="anna")

    @pytest.mark.asyncio
    async def test_departure_defers_normal_notifications(self, async_client, presence):
        await async_client.post(f"{API}/anna/arrive")
        await async_client.post(f"{API}/anna/leave")

        normal = await async_client.post("/api/notifications/send", json={"title": "Paket", "priority": 3})
        critical = await async_client.post("/api/notifications/send", json={"title": "Rauch", "priority": 5})

        assert normal.json()["queued"] is True
        assert critical.json()["delivered"] is True

    @pytest.mark.asyncio
    async def test_arrival_releases_queue(self, async_client, presence, manager):
        await async_client.post(f"{API}/anna/leave")
        await async_client.post("/api/notifications/send", json={"title": "Paket", "priority": 3})
        assert len(manager.queue) == 1

        await async_client.post(f"{API}/anna/arrive")
        stats = await manager.process_queue()

        assert stats["delivered"] == 1
        assert manager.queue == []
