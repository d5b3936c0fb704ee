"""
Delivery Gate — Jetzt zustellen oder zurückstellen?

Evaluated on send and again on every queue tick, in fixed order (first hit
wins):

1. CRITICAL                                   → deliver now
2. Do-Not-Disturb active and priority < HIGH  → defer
3. Quiet hours, allow_critical off, < CRITICAL → defer
4. Smart delivery, user away, priority < HIGH  → defer
5. Notification fatigue, priority < HIGH       → defer
6. otherwise                                   → deliver now
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from models.notification import (
    PRESENCE_AWAY,
    DNDSchedule,
    Notification,
    NotificationPreferences,
    Priority,
    QuietHoursPreferences,
)
from utils.config import settings


class DeliveryState(str, Enum):
    """Gate outcome."""
    DELIVER_NOW = "deliver_now"
    DEFER = "defer"


@dataclass
class DeliveryDecision:
    state: DeliveryState
    reason: str

    @property
    def deliver_now(self) -> bool:
        return self.state == DeliveryState.DELIVER_NOW


# ------------------------------------------------------------------
# Time helpers
# ------------------------------------------------------------------

def parse_time(value: str) -> int:
    """'HH:MM' → minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def is_time_between(current: int, start: int, end: int) -> bool:
    """Inclusive window check; start > end spans midnight."""
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def day_of_week(now: datetime) -> int:
    """0=Sunday … 6=Saturday (Python weekday: 0=Monday)."""
    return (now.weekday() + 1) % 7


def minutes_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


def to_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


# ------------------------------------------------------------------
# Policies
# ------------------------------------------------------------------

def is_dnd_active(schedules: Iterable[DNDSchedule], now: datetime) -> bool:
    """True if any enabled schedule's day + time window contains *now*."""
    current = minutes_of_day(now)
    today = day_of_week(now)

    for schedule in schedules:
        if not schedule.enabled:
            continue
        # days=None means every day; an empty list matches no day
        if schedule.days is not None and today not in schedule.days:
            continue
        if is_time_between(current, parse_time(schedule.start), parse_time(schedule.end)):
            return True
    return False


def is_quiet_hours(quiet_hours: QuietHoursPreferences, now: datetime) -> bool:
    if not quiet_hours.enabled:
        return False
    return is_time_between(
        minutes_of_day(now),
        parse_time(quiet_hours.start),
        parse_time(quiet_hours.end),
    )


def count_delivered_since(history: Iterable[Notification], now_ms: int, window_ms: int) -> int:
    """Number of history entries delivered within the trailing window."""
    return sum(
        1 for n in history
        if n.delivered_at is not None and now_ms - n.delivered_at < window_ms
    )


class DeliveryGate:
    """
    Stateless gate; all state (schedules, preferences, history) is passed in
    so the same evaluation runs on send and on every queue tick.
    """

    def __init__(
        self,
        fatigue_window: int | None = None,
        fatigue_threshold: int | None = None,
    ):
        self.fatigue_window_ms = (
            fatigue_window if fatigue_window is not None else settings.notification_fatigue_window
        ) * 1000
        self.fatigue_threshold = (
            fatigue_threshold if fatigue_threshold is not None
            else settings.notification_fatigue_threshold
        )

    def has_fatigue(self, history: Iterable[Notification], now_ms: int) -> bool:
        return count_delivered_since(history, now_ms, self.fatigue_window_ms) > self.fatigue_threshold

    def evaluate(
        self,
        notification: Notification,
        *,
        now: datetime,
        schedules: Iterable[DNDSchedule],
        preferences: NotificationPreferences,
        history: Iterable[Notification],
    ) -> DeliveryDecision:
        priority = notification.priority or Priority.NORMAL

        if priority >= Priority.CRITICAL:
            return DeliveryDecision(DeliveryState.DELIVER_NOW, "critical")

        ignore_dnd = bool(notification.rules) and notification.rules[0].rule.ignore_dnd
        if not ignore_dnd and priority < Priority.HIGH and is_dnd_active(schedules, now):
            return DeliveryDecision(DeliveryState.DEFER, "dnd")

        if (
            not preferences.quiet_hours.allow_critical
            and priority < Priority.CRITICAL
            and is_quiet_hours(preferences.quiet_hours, now)
        ):
            return DeliveryDecision(DeliveryState.DEFER, "quiet_hours")

        smart = preferences.smart_delivery
        presence = notification.context.presence if notification.context else None
        if (
            smart.enabled
            and smart.delay_non_urgent
            and presence == PRESENCE_AWAY
            and priority < Priority.HIGH
        ):
            return DeliveryDecision(DeliveryState.DEFER, "away")

        if priority < Priority.HIGH and self.has_fatigue(history, to_ms(now)):
            return DeliveryDecision(DeliveryState.DEFER, "fatigue")

        return DeliveryDecision(DeliveryState.DELIVER_NOW, "ok")
