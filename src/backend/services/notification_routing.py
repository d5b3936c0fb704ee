"""
Notification Routing — Kanalauswahl und Gruppierung

Channel selection: the first matched rule with explicit channels wins;
otherwise every enabled channel whose minimum priority is met; never empty.

Grouping: presentation-only merge with similar notifications (same category
and source) delivered within the grouping window.
"""

from collections.abc import Iterable

from models.notification import (
    CHANNEL_PUSH,
    Notification,
    NotificationPreferences,
    Priority,
)


def select_channels(notification: Notification, preferences: NotificationPreferences) -> list[str]:
    """Choose the delivery channel set for *notification*."""
    if notification.rules:
        rule_channels = notification.rules[0].rule.channels
        if rule_channels:
            return list(rule_channels)

    priority = notification.priority or Priority.NORMAL
    channels = [
        name for name, config in preferences.channels.items()
        if config.enabled and priority >= config.priority
    ]

    # At least push for everything
    return channels or [CHANNEL_PUSH]


def should_group(notification: Notification, preferences: NotificationPreferences) -> bool:
    if not preferences.grouping.enabled:
        return False

    # Critical is never merged
    if (notification.priority or Priority.NORMAL) >= Priority.CRITICAL:
        return False

    if notification.rules and notification.rules[0].rule.allow_grouping is False:
        return False

    return True


def find_similar(
    notification: Notification,
    history: Iterable[Notification],
    now_ms: int,
    window_ms: int,
) -> list[Notification]:
    """Delivered notifications in the window sharing category and source."""
    metadata = notification.metadata
    return [
        n for n in history
        if n.delivered_at is not None
        and now_ms - n.delivered_at < window_ms
        and n.metadata.category == metadata.category
        and n.metadata.source == metadata.source
    ]


def group_notification(
    notification: Notification,
    history: Iterable[Notification],
    now_ms: int,
    window_ms: int,
) -> Notification:
    """Rewrite *notification* in place into its grouped form if similar ones exist."""
    similar = find_similar(notification, history, now_ms, window_ms)
    if similar:
        notification.is_grouped = True
        notification.group_count = len(similar) + 1
        notification.title = f"{notification.metadata.category} ({notification.group_count})"
        notification.message = f"{notification.group_count} new events"
    return notification
