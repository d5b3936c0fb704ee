"""
Presence Service — Anwesenheit des Haushalts (home / away).

In-memory state of which household members are currently at home, fed by
arrival/departure reports (geofencing, router, BLE). The notification
manager only reads the aggregated status:

- "home":    at least one tracked member is at home
- "away":    members are tracked and all of them are away
- "unknown": nobody is tracked yet
"""

import time
from dataclasses import dataclass

from loguru import logger

from models.notification import PRESENCE_AWAY, PRESENCE_HOME, PRESENCE_UNKNOWN


@dataclass
class MemberPresence:
    """Current presence state of one household member."""
    member_id: str
    name: str | None = None
    is_home: bool = False
    last_change: float = 0.0


class PresenceService:
    """In-memory home/away tracking."""

    def __init__(self):
        self._members: dict[str, MemberPresence] = {}
        self._pending_events: list[tuple[str, dict]] = []  # (event_name, kwargs)

    def _home_count(self) -> int:
        return sum(1 for m in self._members.values() if m.is_home)

    async def report_arrival(self, member_id: str, name: str | None = None):
        """A member arrived at home."""
        was_empty = self._home_count() == 0
        member = self._members.get(member_id) or MemberPresence(member_id=member_id)
        if name:
            member.name = name
        if not member.is_home:
            member.is_home = True
            member.last_change = time.time()
            logger.info(f"🏠 Presence: {member.name or member_id} ist zu Hause")
        self._members[member_id] = member

        if was_empty:
            self._pending_events.append(("presence_first_arrived", {"member_id": member_id}))
        await self._fire_pending_events()

    async def report_departure(self, member_id: str):
        """A member left home."""
        member = self._members.get(member_id) or MemberPresence(member_id=member_id, is_home=True)
        was_home = member.is_home
        member.is_home = False
        member.last_change = time.time()
        self._members[member_id] = member
        logger.info(f"🚪 Presence: {member.name or member_id} ist unterwegs")

        if was_home and self._home_count() == 0:
            self._pending_events.append(("presence_last_left", {"member_id": member_id}))
        await self._fire_pending_events()

    async def _fire_pending_events(self):
        """Fire collected presence hooks (never raises)."""
        if not self._pending_events:
            return
        from utils.hooks import run_hooks

        events, self._pending_events = self._pending_events, []
        for event_name, kwargs in events:
            await run_hooks(event_name, **kwargs)

    def get_status(self) -> dict:
        """Aggregated presence status for the notification manager."""
        if not self._members:
            status = PRESENCE_UNKNOWN
        elif self._home_count() > 0:
            status = PRESENCE_HOME
        else:
            status = PRESENCE_AWAY
        return {
            "status": status,
            "home": sorted(m.member_id for m in self._members.values() if m.is_home),
            "tracked": len(self._members),
        }

    def clear(self):
        self._members.clear()
        self._pending_events.clear()


_presence_service: PresenceService | None = None


def get_presence_service() -> PresenceService:
    """Get the singleton PresenceService instance."""
    global _presence_service
    if _presence_service is None:
        _presence_service = PresenceService()
    return _presence_service
