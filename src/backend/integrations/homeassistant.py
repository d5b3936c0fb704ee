"""
Home Assistant Integration

REST API client used by the push and speech notification channels
(notify.* and tts.speak service calls).
"""
from typing import Dict, Optional

import httpx
from loguru import logger

from utils.config import settings


class HomeAssistantClient:
    """Client für Home Assistant REST API"""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None):
        self.base_url = (base_url or settings.home_assistant_url or "").rstrip("/")
        self.token = token or settings.home_assistant_token
        self.headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.token)

    async def call_service(
        self,
        domain: str,
        service: str,
        entity_id: Optional[str] = None,
        service_data: Optional[Dict] = None,
        timeout: float = 10.0
    ) -> bool:
        """Service aufrufen"""
        try:
            data = dict(service_data or {})
            if entity_id:
                data["entity_id"] = entity_id

            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.base_url}/api/services/{domain}/{service}",
                    headers=self.headers,
                    json=data,
                    timeout=timeout
                )
                response.raise_for_status()
                logger.info(f"✅ Service {domain}.{service} aufgerufen")
                return True
        except Exception as e:
            logger.error(f"❌ Fehler beim Aufrufen von {domain}.{service}: {e}")
            return False

    async def send_notification(self, service: str, title: Optional[str], message: str) -> bool:
        """Push-Benachrichtigung über einen notify.* Service senden"""
        data = {"message": message}
        if title:
            data["title"] = title
        return await self.call_service("notify", service, service_data=data)

    async def speak(self, tts_entity: str, media_player: str, message: str) -> bool:
        """Text über tts.speak auf einem Media Player ausgeben"""
        return await self.call_service(
            "tts",
            "speak",
            entity_id=tts_entity,
            service_data={"media_player_entity_id": media_player, "message": message},
        )
