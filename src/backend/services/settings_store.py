"""
Settings Store — Key-Value Persistenz für den Notification Manager

The notification manager persists its rules, DND schedules, preferences,
queue and history through a narrow key-value contract so it has no
dependency on where the values end up. Two implementations ship:

- InMemorySettingsStore: process-local dict (tests, ephemeral setups)
- DatabaseSettingsStore: SystemSetting table, JSON-encoded values
"""

import copy
import json
from typing import Any, Protocol

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.database import SystemSetting


class KeyValueStore(Protocol):
    """Contract used by the notification manager for persistence."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...


class InMemorySettingsStore:
    """
    Dict-backed store.

    Top-level containers are copied on the way in and out; nested values are
    shared, callers hand over freshly serialized data.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Any | None:
        return copy.copy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.copy(value)

    def keys(self) -> list[str]:
        return list(self._data.keys())


class DatabaseSettingsStore:
    """
    SystemSetting-backed store.

    Each key is one row; values are JSON-encoded. A row whose value cannot be
    decoded is reported as missing so callers fall back to their defaults.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        if session_factory is None:
            from services.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    async def get(self, key: str) -> Any | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(SystemSetting).where(SystemSetting.key == key)
            )
            setting = result.scalar_one_or_none()
            if not setting:
                return None
            try:
                return json.loads(setting.value)
            except (TypeError, ValueError) as e:
                logger.warning(f"⚠️ Corrupt setting '{key}' ignored: {e}")
                return None

    async def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        async with self._session_factory() as db:
            result = await db.execute(
                select(SystemSetting).where(SystemSetting.key == key)
            )
            existing = result.scalar_one_or_none()
            if existing:
                existing.value = encoded
            else:
                db.add(SystemSetting(key=key, value=encoded))
            await db.commit()
