"""
Notification Manager — Priorisierung und Zustell-Routing

Takes notification events from any producer in the house and runs them
through the decision pipeline:

    enrich → priority → rules → delivery gate → (dispatch | queue)

Dispatch selects channels, groups similar notifications, calls the channel
adapters (each isolated, with a timeout) and records the result in a bounded
history. Deferred notifications wait in the queue; a background loop
re-evaluates them every ``notification_queue_interval`` seconds and drops
entries older than ``notification_queue_ttl``.

All state lives in one NotificationManager instance. Persistence goes through
an injected KeyValueStore; failures there are logged and never abort a send.
"""

import asyncio
import inspect
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from models.database import (
    SETTING_NOTIFICATION_DND_SCHEDULES,
    SETTING_NOTIFICATION_HISTORY,
    SETTING_NOTIFICATION_PREFERENCES,
    SETTING_NOTIFICATION_QUEUE,
    SETTING_NOTIFICATION_RULES,
)
from models.notification import (
    PRESENCE_UNKNOWN,
    AppliedRule,
    ChannelResult,
    DNDSchedule,
    Notification,
    NotificationContext,
    NotificationInput,
    NotificationMetadata,
    NotificationPreferences,
    NotificationRule,
    Priority,
    SendResult,
)
from services.delivery_gate import (
    DeliveryDecision,
    DeliveryGate,
    count_delivered_since,
    day_of_week,
    is_dnd_active,
    is_quiet_hours,
    to_ms,
)
from services.notification_channels import ChannelRegistry, create_default_registry
from services.notification_priority import determine_priority
from services.notification_routing import group_notification, select_channels, should_group
from services.notification_rules import DEFAULT_RULES, RuleStore
from services.settings_store import InMemorySettingsStore, KeyValueStore
from utils.config import settings
from utils.hooks import run_hooks

DAY_MS = 24 * 60 * 60 * 1000
WEEK_MS = 7 * DAY_MS


class PresenceProvider(Protocol):
    """Anything exposing ``get_status() -> {"status": ...}`` (sync or async)."""

    def get_status(self) -> Any: ...


def _deep_merge(base: dict, patch: dict) -> dict:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class NotificationManager:
    """
    Notification routing engine.

    Args:
        store: Key-value persistence (defaults to an in-memory store)
        channels: Channel adapter registry (defaults to the built-in channels)
        presence: Optional presence collaborator
        clock: Returns the current local time; injected for deterministic tests
        gate: Delivery gate (defaults to the configured fatigue limits)
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        channels: ChannelRegistry | None = None,
        presence: PresenceProvider | None = None,
        clock: Callable[[], datetime] | None = None,
        gate: DeliveryGate | None = None,
    ):
        self.store = store or InMemorySettingsStore()
        self.channels = channels or create_default_registry()
        self.presence = presence
        self._clock = clock or datetime.now
        self.gate = gate or DeliveryGate()

        self.rules = RuleStore()
        self.preferences = NotificationPreferences()
        self.dnd_schedules: list[DNDSchedule] = []
        self.queue: list[Notification] = []
        self.history: list[Notification] = []
        self._history_dump: list[dict] = []  # serialized mirror of self.history

        self.history_limit = settings.notification_history_limit
        self.queue_ttl_ms = settings.notification_queue_ttl * 1000
        self.active_window_ms = settings.notification_active_window * 1000
        self.queue_interval = settings.notification_queue_interval
        self.channel_timeout = settings.notification_channel_timeout

        self._initialized = False
        self._running = False
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def now_ms(self) -> int:
        return to_ms(self.now())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self):
        """Load persisted state and install the default rules."""
        if self._initialized:
            return

        raw_prefs = await self._load(SETTING_NOTIFICATION_PREFERENCES)
        if raw_prefs is not None:
            try:
                self.preferences = NotificationPreferences.model_validate(raw_prefs)
            except ValidationError as e:
                logger.warning(f"⚠️ Corrupt notification preferences, using defaults: {e}")

        self.dnd_schedules = self._parse_list(
            await self._load(SETTING_NOTIFICATION_DND_SCHEDULES), DNDSchedule, "DND schedule"
        )

        raw_rules = await self._load(SETTING_NOTIFICATION_RULES)
        if isinstance(raw_rules, dict):
            self.rules = RuleStore.from_dict(raw_rules)
        elif raw_rules is not None:
            logger.warning("⚠️ Corrupt notification rules ignored")

        history = self._parse_list(
            await self._load(SETTING_NOTIFICATION_HISTORY), Notification, "history entry"
        )
        self.history = history[-self.history_limit:]
        self._history_dump = [n.model_dump(mode="json") for n in self.history]

        self.queue = self._parse_list(
            await self._load(SETTING_NOTIFICATION_QUEUE), Notification, "queued notification"
        )

        if settings.notification_default_rules_enabled:
            await self._install_default_rules()

        self._initialized = True
        logger.info(
            f"✅ Notification Manager initialisiert ({len(self.rules)} Regeln, "
            f"{len(self.dnd_schedules)} DND-Zeitpläne, {len(self.queue)} in Queue)"
        )

    async def _install_default_rules(self):
        missing = [rule for rule in DEFAULT_RULES if rule.id not in self.rules]
        if not missing:
            return
        now_ms = self.now_ms()
        for rule in missing:
            self.rules.create(rule, now_ms)
        await self.save_rules()

    async def start(self):
        """Start the queue processor background loop."""
        if not settings.notification_processor_enabled:
            logger.info("⏭️  Notification Queue Processor deaktiviert")
            return
        if self._task and not self._task.done():
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"✅ Notification Queue Processor gestartet (interval={self.queue_interval}s)")

    async def stop(self):
        """Stop the queue processor."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    async def _loop(self):
        """Main queue processor loop."""
        while self._running:
            try:
                await asyncio.sleep(self.queue_interval)
                await self.process_queue()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"⚠️ Notification queue loop error: {e}")

    # ------------------------------------------------------------------
    # Core: send
    # ------------------------------------------------------------------

    async def send(self, notification: NotificationInput | dict) -> SendResult:
        """Route one notification: deliver now or queue for later."""
        if isinstance(notification, dict):
            notification = NotificationInput.model_validate(notification)

        enriched = await self.enrich(notification)
        enriched.priority = self.determine_priority(enriched)
        enriched.rules = self.apply_rules(enriched)

        decision = self.evaluate_delivery(enriched)
        if decision.deliver_now:
            await self.deliver_notification(enriched)
        else:
            self.queue.append(enriched)
            logger.info(
                f"⏳ Notification {enriched.id} zurückgestellt "
                f"(reason={decision.reason}, priority={enriched.priority.name})"
            )
            await self.save_queue()
            await run_hooks("notification_queued", notification=enriched, reason=decision.reason)

        return SendResult(
            success=True,
            notification_id=enriched.id,
            delivered=decision.deliver_now,
            queued=not decision.deliver_now,
        )

    async def enrich(self, data: NotificationInput) -> Notification:
        """Attach id, timestamp, metadata and a fresh context."""
        now_ms = self.now_ms()
        return Notification(
            id=f"notif_{now_ms}_{uuid.uuid4().hex[:9]}",
            timestamp=now_ms,
            title=data.title,
            message=data.message,
            priority=data.priority,
            metadata=NotificationMetadata(
                source=data.source or "system",
                category=data.category or "general",
                device_id=data.device_id,
                zone_id=data.zone_id,
            ),
            context=await self.get_context(),
        )

    async def get_context(self) -> NotificationContext:
        now = self.now()
        return NotificationContext(
            hour=now.hour,
            day_of_week=day_of_week(now),
            presence=await self._get_presence(),
            is_quiet_hours=is_quiet_hours(self.preferences.quiet_hours, now),
            active_notification_count=count_delivered_since(
                self.history, to_ms(now), self.active_window_ms
            ),
        )

    async def _get_presence(self) -> str:
        if self.presence is None:
            return PRESENCE_UNKNOWN
        try:
            status = self.presence.get_status()
            if inspect.isawaitable(status):
                status = await status
            if isinstance(status, dict):
                value = status.get("status")
            else:
                value = getattr(status, "status", None)
            return value or PRESENCE_UNKNOWN
        except Exception as e:
            # Presence subsystem not available
            logger.debug(f"Presence status unavailable: {e}")
            return PRESENCE_UNKNOWN

    def determine_priority(self, notification: Notification) -> Priority:
        return determine_priority(notification, self.rules)

    def apply_rules(self, notification: Notification) -> list[AppliedRule]:
        return self.rules.apply(notification)

    def evaluate_delivery(self, notification: Notification) -> DeliveryDecision:
        return self.gate.evaluate(
            notification,
            now=self.now(),
            schedules=self.dnd_schedules,
            preferences=self.preferences,
            history=self.history,
        )

    def should_deliver_now(self, notification: Notification) -> bool:
        return self.evaluate_delivery(notification).deliver_now

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def deliver_notification(self, notification: Notification) -> dict[str, ChannelResult]:
        """Deliver over every selected channel and record the result in history."""
        channels = select_channels(notification, self.preferences)

        if should_group(notification, self.preferences):
            group_notification(
                notification, self.history, self.now_ms(), self.preferences.grouping.window
            )

        # Sequential; one failing channel never blocks the others
        results: dict[str, ChannelResult] = {}
        for channel in channels:
            results[channel] = await self._deliver_to_channel(notification, channel)

        notification.delivery_results = results
        notification.delivered_at = self.now_ms()
        self._record_history(notification)
        await self.save_history()

        ok = [c for c, r in results.items() if r.success]
        logger.info(
            f"📤 Notification {notification.id} zugestellt "
            f"(priority={notification.priority.name}, channels={ok}/{list(results)})"
        )

        # Observer failures are swallowed inside run_hooks
        await run_hooks("notification_delivered", notification=notification)
        return results

    async def _deliver_to_channel(self, notification: Notification, channel: str) -> ChannelResult:
        try:
            if self.channel_timeout:
                result = await asyncio.wait_for(
                    self.channels.deliver(notification, channel), timeout=self.channel_timeout
                )
            else:
                result = await self.channels.deliver(notification, channel)
            if isinstance(result, dict):
                result = ChannelResult.model_validate({"channel": channel, **result})
        except asyncio.TimeoutError:
            logger.warning(f"⚠️ Channel {channel} timed out after {self.channel_timeout}s")
            return ChannelResult(
                success=False, channel=channel, error=f"Timed out after {self.channel_timeout}s"
            )
        except Exception as e:
            logger.warning(f"⚠️ Failed to deliver to {channel}: {e}")
            return ChannelResult(success=False, channel=channel, error=str(e))

        if not isinstance(result, ChannelResult):
            logger.warning(f"⚠️ Channel {channel} returned no result ({type(result).__name__})")
            return ChannelResult(
                success=False, channel=channel,
                error=f"Invalid channel result: {type(result).__name__}",
            )
        return result

    def _record_history(self, notification: Notification):
        self.history.append(notification)
        self._history_dump.append(notification.model_dump(mode="json"))
        if len(self.history) > self.history_limit:
            self.history = self.history[-self.history_limit:]
            self._history_dump = self._history_dump[-self.history_limit:]

    # ------------------------------------------------------------------
    # Queue processor
    # ------------------------------------------------------------------

    async def process_queue(self) -> dict[str, int]:
        """
        Re-evaluate every queued notification once.

        Entries older than the TTL are dropped without delivery; entries the
        gate now lets through are removed and dispatched. The queue is only
        persisted when its contents changed.
        """
        stats = {"delivered": 0, "expired": 0, "remaining": len(self.queue)}
        if not self.queue:
            return stats

        now_ms = self.now_ms()
        for notification in list(self.queue):
            if now_ms - notification.timestamp > self.queue_ttl_ms:
                self._remove_from_queue(notification.id)
                stats["expired"] += 1
                logger.debug(f"🗑️ Queued notification {notification.id} expired")
                continue

            notification.context = await self.get_context()
            if self.should_deliver_now(notification):
                self._remove_from_queue(notification.id)
                await self.deliver_notification(notification)
                stats["delivered"] += 1

        stats["remaining"] = len(self.queue)
        if stats["delivered"] or stats["expired"]:
            await self.save_queue()
            logger.info(
                f"🔄 Queue verarbeitet: {stats['delivered']} zugestellt, "
                f"{stats['expired']} abgelaufen, {stats['remaining']} wartend"
            )
        return stats

    def _remove_from_queue(self, notification_id: str):
        self.queue = [n for n in self.queue if n.id != notification_id]

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def list_rules(self) -> list[NotificationRule]:
        return self.rules.values()

    def get_rule(self, rule_id: str) -> NotificationRule | None:
        return self.rules.get(rule_id)

    async def create_rule(self, rule: NotificationRule | dict) -> NotificationRule:
        if isinstance(rule, dict):
            rule = NotificationRule.model_validate(rule)
        created = self.rules.create(rule, self.now_ms())
        await self.save_rules()
        logger.info(f"📋 Regel erstellt: {created.id} ({created.name})")
        return created

    async def update_rule(self, rule_id: str, patch: dict) -> NotificationRule:
        """Merge *patch* into a rule. Raises RuleNotFoundError if absent."""
        updated = self.rules.update(rule_id, patch)
        await self.save_rules()
        return updated

    async def delete_rule(self, rule_id: str) -> bool:
        deleted = self.rules.delete(rule_id)
        if deleted:
            await self.save_rules()
            logger.info(f"🗑️ Regel gelöscht: {rule_id}")
        return deleted

    # ------------------------------------------------------------------
    # Do Not Disturb
    # ------------------------------------------------------------------

    async def set_dnd_schedule(self, schedule: DNDSchedule | dict) -> DNDSchedule:
        """Add a DND schedule (id and creation time are always generated)."""
        if isinstance(schedule, dict):
            schedule = DNDSchedule.model_validate(schedule)
        now_ms = self.now_ms()
        stored = schedule.model_copy(update={
            "id": f"schedule_{now_ms}_{uuid.uuid4().hex[:9]}",
            "created": now_ms,
        })
        self.dnd_schedules.append(stored)
        await self.save_dnd_schedules()
        return stored

    def list_dnd_schedules(self) -> list[DNDSchedule]:
        return list(self.dnd_schedules)

    async def delete_dnd_schedule(self, schedule_id: str) -> bool:
        remaining = [s for s in self.dnd_schedules if s.id != schedule_id]
        if len(remaining) == len(self.dnd_schedules):
            return False
        self.dnd_schedules = remaining
        await self.save_dnd_schedules()
        return True

    def is_do_not_disturb(self) -> bool:
        return is_dnd_active(self.dnd_schedules, self.now())

    def is_quiet_hours(self) -> bool:
        return is_quiet_hours(self.preferences.quiet_hours, self.now())

    def has_notification_fatigue(self) -> bool:
        return self.gate.has_fatigue(self.history, self.now_ms())

    def get_active_notification_count(self) -> int:
        return count_delivered_since(self.history, self.now_ms(), self.active_window_ms)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def get_preferences(self) -> NotificationPreferences:
        return self.preferences

    async def update_preferences(self, patch: dict) -> NotificationPreferences:
        merged = _deep_merge(self.preferences.model_dump(mode="json"), patch)
        self.preferences = NotificationPreferences.model_validate(merged)
        await self._save(SETTING_NOTIFICATION_PREFERENCES, self.preferences.model_dump(mode="json"))
        return self.preferences

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict:
        now_ms = self.now_ms()
        today = [n for n in self.history if n.delivered_at and now_ms - n.delivered_at < DAY_MS]
        this_week = [n for n in self.history if n.delivered_at and now_ms - n.delivered_at < WEEK_MS]

        by_priority: dict[int, int] = {}
        by_category: dict[str, int] = {}
        by_channel: dict[str, int] = {}
        for n in today:
            priority = int(n.priority or Priority.NORMAL)
            by_priority[priority] = by_priority.get(priority, 0) + 1
            category = n.metadata.category or "unknown"
            by_category[category] = by_category.get(category, 0) + 1
            for channel in n.delivery_results:
                by_channel[channel] = by_channel.get(channel, 0) + 1

        return {
            "total": len(self.history),
            "today": len(today),
            "this_week": len(this_week),
            "queued": len(self.queue),
            "by_priority": by_priority,
            "by_category": by_category,
            "by_channel": by_channel,
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _load(self, key: str) -> Any | None:
        try:
            return await self.store.get(key)
        except Exception as e:
            logger.error(f"❌ Failed to load '{key}': {e}")
            return None

    @staticmethod
    def _parse_list(raw: Any, model: type, label: str) -> list:
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"⚠️ Corrupt {label} list ignored")
            return []
        parsed = []
        for item in raw:
            try:
                parsed.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping malformed {label}: {e}")
        return parsed

    async def _save(self, key: str, value: Any):
        try:
            await self.store.set(key, value)
        except Exception as e:
            logger.error(f"❌ Failed to persist '{key}': {e}")

    async def save_rules(self):
        await self._save(SETTING_NOTIFICATION_RULES, self.rules.to_dict())

    async def save_dnd_schedules(self):
        await self._save(
            SETTING_NOTIFICATION_DND_SCHEDULES,
            [s.model_dump(mode="json") for s in self.dnd_schedules],
        )

    async def save_queue(self):
        await self._save(SETTING_NOTIFICATION_QUEUE, [n.model_dump(mode="json") for n in self.queue])

    async def save_history(self):
        await self._save(SETTING_NOTIFICATION_HISTORY, list(self._history_dump))


_notification_manager: NotificationManager | None = None


def get_notification_manager() -> NotificationManager:
    """Get the singleton NotificationManager instance."""
    global _notification_manager
    if _notification_manager is None:
        from services.presence_service import get_presence_service

        if settings.notification_store_backend == "database":
            from services.settings_store import DatabaseSettingsStore
            store = DatabaseSettingsStore()
        else:
            store = InMemorySettingsStore()

        _notification_manager = NotificationManager(store=store, presence=get_presence_service())
    return _notification_manager
