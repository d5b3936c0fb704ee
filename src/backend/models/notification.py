"""
Notification Models — Datentypen des Notification Managers

Pydantic models for everything the notification manager routes, stores and
persists: notifications, rules, Do-Not-Disturb schedules and user preferences.
All persisted types round-trip through ``model_dump(mode="json")`` /
``model_validate`` so they can live in the key-value settings store.
"""

import re
from enum import IntEnum

from pydantic import BaseModel, Field, field_validator

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

CHANNEL_PUSH = "push"
CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"
CHANNEL_SPEECH = "speech"
CHANNEL_VISUAL = "visual"
CHANNELS = (CHANNEL_PUSH, CHANNEL_EMAIL, CHANNEL_SMS, CHANNEL_SPEECH, CHANNEL_VISUAL)

PRESENCE_HOME = "home"
PRESENCE_AWAY = "away"
PRESENCE_UNKNOWN = "unknown"


class Priority(IntEnum):
    """Ordinal notification priority."""
    INFO = 1
    LOW = 2
    NORMAL = 3
    HIGH = 4
    CRITICAL = 5


def _validate_hhmm(value: str) -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
        raise ValueError(f"time must be formatted as HH:MM, got {value!r}")
    return value.strip()


# ==========================================================================
# Rules
# ==========================================================================

class RuleConditions(BaseModel):
    """Conjunctive match conditions. Absent fields are ignored."""
    category: str | None = None
    keywords: list[str] | None = None
    device_id: str | None = None
    zone_id: str | None = None


class NotificationRule(BaseModel):
    """Named condition → outcome mapping."""
    id: str | None = None
    name: str = ""
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    priority: Priority = Priority.NORMAL
    channels: list[str] = Field(default_factory=list)
    ignore_dnd: bool = False
    allow_grouping: bool = True
    can_delay: bool = False
    enabled: bool = True
    created: int | None = None


class AppliedRule(BaseModel):
    """Summary of a rule that matched a notification."""
    rule_id: str
    rule_name: str
    rule: NotificationRule


# ==========================================================================
# Do Not Disturb
# ==========================================================================

class DNDSchedule(BaseModel):
    """
    Do-Not-Disturb window.

    ``days`` uses 0=Sunday … 6=Saturday. ``start > end`` wraps midnight.
    """
    id: str | None = None
    days: list[int] | None = None
    start: str
    end: str
    enabled: bool = True
    created: int | None = None

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _validate_hhmm(v)

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: list[int] | None) -> list[int] | None:
        if v is not None and any(d < 0 or d > 6 for d in v):
            raise ValueError("days must be within 0 (Sunday) .. 6 (Saturday)")
        return v


# ==========================================================================
# Preferences
# ==========================================================================

class ChannelPreference(BaseModel):
    enabled: bool = True
    priority: Priority = Priority.NORMAL  # minimum priority to use this channel


class GroupingPreferences(BaseModel):
    enabled: bool = True
    window: int = 5 * 60 * 1000  # ms
    max_per_group: int = 5


class QuietHoursPreferences(BaseModel):
    enabled: bool = True
    start: str = "22:00"
    end: str = "07:00"
    allow_critical: bool = True

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return _validate_hhmm(v)


class SmartDeliveryPreferences(BaseModel):
    enabled: bool = True
    consider_presence: bool = True
    consider_activity: bool = True
    delay_non_urgent: bool = True


def _default_channels() -> dict[str, ChannelPreference]:
    return {
        CHANNEL_PUSH: ChannelPreference(enabled=True, priority=Priority.NORMAL),
        CHANNEL_EMAIL: ChannelPreference(enabled=False, priority=Priority.HIGH),
        CHANNEL_SMS: ChannelPreference(enabled=False, priority=Priority.CRITICAL),
        CHANNEL_SPEECH: ChannelPreference(enabled=True, priority=Priority.HIGH),
        CHANNEL_VISUAL: ChannelPreference(enabled=True, priority=Priority.NORMAL),
    }


class NotificationPreferences(BaseModel):
    """Single user preference record."""
    channels: dict[str, ChannelPreference] = Field(default_factory=_default_channels)
    grouping: GroupingPreferences = Field(default_factory=GroupingPreferences)
    quiet_hours: QuietHoursPreferences = Field(default_factory=QuietHoursPreferences)
    smart_delivery: SmartDeliveryPreferences = Field(default_factory=SmartDeliveryPreferences)


# ==========================================================================
# Notifications
# ==========================================================================

class NotificationInput(BaseModel):
    """Raw notification as handed in by a producer."""
    title: str | None = None
    message: str | None = None
    category: str | None = None
    source: str | None = None
    priority: Priority | None = None
    device_id: str | None = None
    zone_id: str | None = None


class NotificationMetadata(BaseModel):
    source: str = "system"
    category: str = "general"
    device_id: str | None = None
    zone_id: str | None = None


class NotificationContext(BaseModel):
    """Snapshot of the environment at decision time."""
    hour: int
    day_of_week: int  # 0=Sunday
    presence: str = PRESENCE_UNKNOWN
    is_quiet_hours: bool = False
    active_notification_count: int = 0


class ChannelResult(BaseModel):
    success: bool
    channel: str
    error: str | None = None
    note: str | None = None


class Notification(BaseModel):
    """A single routed event."""
    id: str
    timestamp: int  # ms since epoch
    title: str | None = None
    message: str | None = None
    metadata: NotificationMetadata = Field(default_factory=NotificationMetadata)
    context: NotificationContext | None = None
    priority: Priority | None = None
    rules: list[AppliedRule] = Field(default_factory=list)
    is_grouped: bool = False
    group_count: int = 1
    delivery_results: dict[str, ChannelResult] = Field(default_factory=dict)
    delivered_at: int | None = None

    @property
    def content(self) -> str:
        """Lower-cased title + message, used by keyword matching."""
        return f"{self.title or ''} {self.message or ''}".lower()


class SendResult(BaseModel):
    success: bool = True
    notification_id: str
    delivered: bool
    queued: bool
