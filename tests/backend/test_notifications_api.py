"""
Tests für die Notification API (api/routes/notifications.py)

Runs against the FastAPI app with the manager dependency replaced by an
in-memory, clock-controlled NotificationManager.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI

from api.lifecycle import lifespan
from utils.config import settings
from utils.hooks import register_hook

API = "/api/notifications"


@pytest.mark.integration
class TestSendEndpoint:
    @pytest.mark.asyncio
    async def test_send_delivers(self, async_client, manager):
        response = await async_client.post(f"{API}/send", json={"title": "Hallo", "priority": 3})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["delivered"] is True
        assert data["queued"] is False
        assert manager.history[-1].id == data["notification_id"]

    @pytest.mark.asyncio
    async def test_send_rejects_invalid_priority(self, async_client):
        response = await async_client.post(f"{API}/send", json={"title": "Hallo", "priority": 9})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_statistics(self, async_client):
        await async_client.post(f"{API}/send", json={"title": "Hallo", "category": "door", "priority": 4})

        response = await async_client.get(f"{API}/statistics")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["today"] == 1
        assert data["by_category"] == {"door": 1}
        assert data["by_priority"] == {"4": 1}


@pytest.mark.integration
class TestRuleEndpoints:
    @pytest.mark.asyncio
    async def test_rule_lifecycle(self, async_client):
        response = await async_client.post(f"{API}/rules", json={
            "name": "Energie",
            "conditions": {"category": "energy", "keywords": ["exceeded"]},
            "priority": 4,
            "channels": ["push"],
        })
        assert response.status_code == 201
        rule = response.json()
        assert rule["id"].startswith("rule_")
        assert rule["created"] is not None

        response = await async_client.patch(f"{API}/rules/{rule['id']}", json={"enabled": False})
        assert response.status_code == 200
        assert response.json()["enabled"] is False
        assert response.json()["conditions"]["keywords"] == ["exceeded"]

        response = await async_client.get(f"{API}/rules")
        assert [r["id"] for r in response.json()["rules"]] == [rule["id"]]

        response = await async_client.delete(f"{API}/rules/{rule['id']}")
        assert response.status_code == 200
        assert response.json()["success"] is True

    @pytest.mark.asyncio
    async def test_update_missing_rule_is_404(self, async_client):
        response = await async_client.patch(f"{API}/rules/missing", json={"name": "x"})
        assert response.status_code == 404
        assert response.json()["detail"] == "Rule not found"

    @pytest.mark.asyncio
    async def test_delete_missing_rule_is_404(self, async_client):
        response = await async_client.delete(f"{API}/rules/missing")
        assert response.status_code == 404


@pytest.mark.integration
class TestDndEndpoints:
    @pytest.mark.asyncio
    async def test_dnd_lifecycle(self, async_client):
        response = await async_client.post(f"{API}/dnd", json={"start": "11:00", "end": "13:00"})
        assert response.status_code == 201
        schedule = response.json()
        assert schedule["id"].startswith("schedule_")

        response = await async_client.get(f"{API}/dnd")
        data = response.json()
        assert data["active"] is True
        assert [s["id"] for s in data["schedules"]] == [schedule["id"]]

        response = await async_client.delete(f"{API}/dnd/{schedule['id']}")
        assert response.status_code == 200

        response = await async_client.delete(f"{API}/dnd/{schedule['id']}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_time_is_422(self, async_client):
        response = await async_client.post(f"{API}/dnd", json={"start": "25:00", "end": "07:00"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_queue_lists_deferred(self, async_client):
        await async_client.post(f"{API}/dnd", json={"start": "00:00", "end": "23:59"})
        await async_client.post(f"{API}/send", json={"title": "Später", "priority": 3})

        response = await async_client.get(f"{API}/queue")

        data = response.json()
        assert data["total"] == 1
        assert data["notifications"][0]["title"] == "Später"


@pytest.mark.integration
class TestPreferenceAndHistoryEndpoints:
    @pytest.mark.asyncio
    async def test_get_preferences_defaults(self, async_client):
        response = await async_client.get(f"{API}/preferences")

        data = response.json()
        assert data["channels"]["push"] == {"enabled": True, "priority": 3}
        assert data["quiet_hours"]["start"] == "22:00"

    @pytest.mark.asyncio
    async def test_patch_preferences(self, async_client):
        response = await async_client.patch(
            f"{API}/preferences", json={"channels": {"sms": {"enabled": True}}}
        )

        assert response.status_code == 200
        assert response.json()["channels"]["sms"] == {"enabled": True, "priority": 5}

    @pytest.mark.asyncio
    async def test_patch_invalid_preferences_is_422(self, async_client):
        response = await async_client.patch(
            f"{API}/preferences", json={"quiet_hours": {"end": "noon"}}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_history_newest_first(self, async_client):
        for title in ("eins", "zwei", "drei"):
            await async_client.post(f"{API}/send", json={"title": title, "category": title, "priority": 3})

        response = await async_client.get(f"{API}/history", params={"limit": 2})

        data = response.json()
        assert data["total"] == 3
        assert [n["title"] for n in data["notifications"]] == ["drei", "zwei"]

    @pytest.mark.asyncio
    async def test_health(self, async_client):
        response = await async_client.get("/health")
        assert response.json() == {"status": "ok"}


@pytest.mark.integration
class TestLifespan:
    @pytest.mark.asyncio
    async def test_lifespan_starts_and_stops_manager(self, manager):
        app = FastAPI()
        startup = AsyncMock(return_value=None)
        shutdown = AsyncMock(return_value=None)
        register_hook("startup", startup)
        register_hook("shutdown", shutdown)

        with patch("api.lifecycle.get_notification_manager", return_value=manager), \
             patch.object(settings, "notification_store_backend", "memory"), \
             patch.object(settings, "notification_processor_enabled", True):
            async with lifespan(app):
                assert app.state.notification_manager is manager
                assert manager.running is True
                startup.assert_awaited_once_with(app=app)

        assert manager.running is False
        shutdown.assert_awaited_once_with(app=app)
