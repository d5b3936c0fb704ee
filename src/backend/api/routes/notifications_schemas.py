"""
Pydantic Request/Response Schemas for Notification API
"""

from pydantic import BaseModel, Field

from models.notification import (
    DNDSchedule,
    Notification,
    NotificationRule,
    Priority,
    RuleConditions,
)


class SendRequest(BaseModel):
    """Notification submitted by a producer."""
    title: str | None = Field(None, max_length=255)
    message: str | None = Field(None, max_length=5000)
    category: str | None = Field(None, max_length=100)
    source: str | None = Field(None, max_length=100)
    priority: Priority | None = None
    device_id: str | None = Field(None, max_length=100)
    zone_id: str | None = Field(None, max_length=100)


class SendResponse(BaseModel):
    success: bool
    notification_id: str
    delivered: bool
    queued: bool


class RuleRequest(BaseModel):
    """New routing rule."""
    id: str | None = Field(None, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    priority: Priority = Priority.NORMAL
    channels: list[str] = Field(default_factory=list)
    ignore_dnd: bool = False
    allow_grouping: bool = True
    can_delay: bool = False
    enabled: bool = True


class RuleUpdateRequest(BaseModel):
    """Partial rule update; only fields that are set are applied."""
    name: str | None = Field(None, min_length=1, max_length=255)
    conditions: dict | None = None
    priority: Priority | None = None
    channels: list[str] | None = None
    ignore_dnd: bool | None = None
    allow_grouping: bool | None = None
    can_delay: bool | None = None
    enabled: bool | None = None


class RuleListResponse(BaseModel):
    rules: list[NotificationRule]


class DNDScheduleRequest(BaseModel):
    days: list[int] | None = None
    start: str
    end: str
    enabled: bool = True


class DNDScheduleListResponse(BaseModel):
    schedules: list[DNDSchedule]
    active: bool


class NotificationListResponse(BaseModel):
    notifications: list[Notification]
    total: int


class StatisticsResponse(BaseModel):
    total: int
    today: int
    this_week: int
    queued: int
    by_priority: dict[int, int]
    by_category: dict[str, int]
    by_channel: dict[str, int]
