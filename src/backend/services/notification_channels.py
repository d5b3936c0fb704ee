"""
Notification Channels — Zustellkanäle

Channel adapters actually deliver a notification (push, email, SMS, speech,
visual). The manager only talks to the ChannelRegistry; unknown channel
names raise UnknownChannelError, which the dispatcher records per channel.

Push and speech go through Home Assistant when it is configured. Email, SMS
and visual have no backend yet and only log the delivery.
"""

from typing import Protocol

from loguru import logger

from integrations.homeassistant import HomeAssistantClient
from models.notification import (
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    CHANNEL_SMS,
    CHANNEL_SPEECH,
    CHANNEL_VISUAL,
    ChannelResult,
    Notification,
)
from utils.config import settings


class UnknownChannelError(LookupError):
    def __init__(self, channel: str):
        super().__init__(f"Unknown channel: {channel}")
        self.channel = channel


class ChannelAdapter(Protocol):
    """Delivers one notification over one channel."""

    async def deliver(self, notification: Notification) -> ChannelResult: ...


class LogChannel:
    """Placeholder channel: logs the delivery and reports success with a note."""

    def __init__(self, channel: str, note: str):
        self.channel = channel
        self.note = note

    async def deliver(self, notification: Notification) -> ChannelResult:
        logger.info(f"📨 [{self.channel}] {notification.title or notification.message}")
        return ChannelResult(success=True, channel=self.channel, note=self.note)


class PushChannel:
    """Push via a Home Assistant notify.* service."""

    def __init__(self, client: HomeAssistantClient | None = None, service: str | None = None):
        self.client = client or HomeAssistantClient()
        self.service = service or settings.notification_push_service

    async def deliver(self, notification: Notification) -> ChannelResult:
        text = notification.message or notification.title or ""
        if not self.client.configured:
            logger.info(f"📱 Push (nur Log): {notification.title or text}")
            return ChannelResult(
                success=True, channel=CHANNEL_PUSH, note="Home Assistant not configured"
            )

        ok = await self.client.send_notification(self.service, notification.title, text)
        if not ok:
            return ChannelResult(
                success=False, channel=CHANNEL_PUSH, error=f"notify.{self.service} failed"
            )
        return ChannelResult(success=True, channel=CHANNEL_PUSH)


class SpeechChannel:
    """Spoken announcement via Home Assistant tts.speak."""

    def __init__(
        self,
        client: HomeAssistantClient | None = None,
        tts_entity: str | None = None,
        media_player: str | None = None,
    ):
        self.client = client or HomeAssistantClient()
        self.tts_entity = tts_entity or settings.notification_tts_entity
        self.media_player = media_player or settings.notification_tts_media_player

    async def deliver(self, notification: Notification) -> ChannelResult:
        text = notification.message or notification.title or ""
        if not (self.client.configured and self.tts_entity and self.media_player):
            logger.info(f"🔊 Sprachausgabe (nur Log): {text}")
            return ChannelResult(
                success=True, channel=CHANNEL_SPEECH, note="Speech output not configured"
            )

        ok = await self.client.speak(self.tts_entity, self.media_player, text)
        if not ok:
            return ChannelResult(success=False, channel=CHANNEL_SPEECH, error="tts.speak failed")
        return ChannelResult(success=True, channel=CHANNEL_SPEECH)


class ChannelRegistry:
    """Name → adapter mapping used by the dispatcher."""

    def __init__(self, adapters: dict[str, ChannelAdapter] | None = None):
        self._adapters: dict[str, ChannelAdapter] = dict(adapters or {})

    def register(self, channel: str, adapter: ChannelAdapter) -> None:
        self._adapters[channel] = adapter

    def names(self) -> list[str]:
        return list(self._adapters)

    async def deliver(self, notification: Notification, channel: str) -> ChannelResult:
        adapter = self._adapters.get(channel)
        if adapter is None:
            raise UnknownChannelError(channel)
        return await adapter.deliver(notification)


def create_default_registry(client: HomeAssistantClient | None = None) -> ChannelRegistry:
    """Registry with the five built-in channels."""
    client = client or HomeAssistantClient()
    return ChannelRegistry({
        CHANNEL_PUSH: PushChannel(client),
        CHANNEL_EMAIL: LogChannel(CHANNEL_EMAIL, "Email integration not configured"),
        CHANNEL_SMS: LogChannel(CHANNEL_SMS, "SMS integration not configured"),
        CHANNEL_SPEECH: SpeechChannel(client),
        CHANNEL_VISUAL: LogChannel(CHANNEL_VISUAL, "Visual delivery simulated"),
    })
