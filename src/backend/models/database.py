"""
Datenbank Models
"""
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    """Return current UTC time as naive datetime (DB compat, replaces deprecated utcnow)."""
    return datetime.now(UTC).replace(tzinfo=None)


# Setting keys used by the notification manager
SETTING_NOTIFICATION_PREFERENCES = "notifications.preferences"
SETTING_NOTIFICATION_DND_SCHEDULES = "notifications.dnd_schedules"
SETTING_NOTIFICATION_RULES = "notifications.rules"
SETTING_NOTIFICATION_QUEUE = "notifications.queue"
SETTING_NOTIFICATION_HISTORY = "notifications.history"


class SystemSetting(Base):
    """
    Key-Value Store for runtime system settings.

    Keys follow a namespace pattern: "category.setting_name"
    Values are stored as JSON strings for type flexibility.
    """
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded value
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
