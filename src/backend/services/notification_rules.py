"""
Notification Rules — Regel-Speicher und Matcher

Rules map match conditions (category, keywords, device, zone) to a priority,
forced channels and delivery flags. The store keeps stable insertion order:
the first matching rule wins everywhere rules are consulted.
"""

import time
import uuid

from loguru import logger
from pydantic import ValidationError

from models.notification import (
    CHANNEL_PUSH,
    CHANNEL_SMS,
    CHANNEL_SPEECH,
    AppliedRule,
    Notification,
    NotificationRule,
    Priority,
    RuleConditions,
)


class RuleNotFoundError(LookupError):
    """Raised when updating a rule id that does not exist."""

    def __init__(self, rule_id: str):
        super().__init__("Rule not found")
        self.rule_id = rule_id


DEFAULT_RULES: list[NotificationRule] = [
    NotificationRule(
        id="security_critical",
        name="Security Alerts",
        conditions=RuleConditions(
            category="security",
            keywords=["alarm", "intrång", "intrusion", "motion detected"],
        ),
        priority=Priority.CRITICAL,
        channels=[CHANNEL_PUSH, CHANNEL_SPEECH, CHANNEL_SMS],
        ignore_dnd=True,
    ),
    NotificationRule(
        id="energy_high",
        name="Energy Warnings",
        conditions=RuleConditions(
            category="energy",
            keywords=["hög förbrukning", "high consumption", "överskridande", "exceeded"],
        ),
        priority=Priority.HIGH,
        channels=[CHANNEL_PUSH],
        allow_grouping=True,
    ),
    NotificationRule(
        id="device_error",
        name="Device Errors",
        conditions=RuleConditions(
            category="device",
            keywords=["fel", "error", "offline", "failed"],
        ),
        priority=Priority.HIGH,
        channels=[CHANNEL_PUSH],
        allow_grouping=False,
    ),
    NotificationRule(
        id="info_low",
        name="Information",
        conditions=RuleConditions(category="info"),
        priority=Priority.LOW,
        channels=[CHANNEL_PUSH],
        allow_grouping=True,
        can_delay=True,
    ),
]


def generate_rule_id() -> str:
    return f"rule_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def matches_rule(notification: Notification, rule: NotificationRule) -> bool:
    """
    Check a notification against a rule's conditions.

    Conditions are AND-ed across present fields; keywords are OR-ed as a
    case-insensitive substring test on title + message. The rule's
    ``enabled`` flag is not consulted here.
    """
    conditions = rule.conditions
    metadata = notification.metadata

    if conditions.category and metadata.category != conditions.category:
        return False

    if conditions.keywords:
        content = notification.content
        if not any(keyword.lower() in content for keyword in conditions.keywords):
            return False

    if conditions.device_id and metadata.device_id != conditions.device_id:
        return False

    if conditions.zone_id and metadata.zone_id != conditions.zone_id:
        return False

    return True


class RuleStore:
    """Ordered id → rule repository."""

    def __init__(self, rules: list[NotificationRule] | None = None):
        self._rules: dict[str, NotificationRule] = {}
        for rule in rules or []:
            if rule.id:
                self._rules[rule.id] = rule

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def get(self, rule_id: str) -> NotificationRule | None:
        return self._rules.get(rule_id)

    def values(self) -> list[NotificationRule]:
        return list(self._rules.values())

    def create(self, rule: NotificationRule, now_ms: int) -> NotificationRule:
        """Insert (or replace in place) a rule; assigns id and creation time."""
        rule = rule.model_copy(deep=True)
        rule.id = rule.id or generate_rule_id()
        rule.created = now_ms
        self._rules[rule.id] = rule
        logger.debug(f"Rule stored: {rule.id} ({rule.name})")
        return rule

    def update(self, rule_id: str, patch: dict) -> NotificationRule:
        """Merge *patch* into an existing rule, keeping its position."""
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)

        data = rule.model_dump()
        for key, value in patch.items():
            if key == "conditions" and isinstance(value, dict):
                data["conditions"] = {**data["conditions"], **value}
            else:
                data[key] = value
        data["id"] = rule_id

        updated = NotificationRule.model_validate(data)
        self._rules[rule_id] = updated
        return updated

    def delete(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    def matching(self, notification: Notification) -> list[NotificationRule]:
        """Enabled rules matching *notification*, in insertion order."""
        return [
            rule for rule in self._rules.values()
            if rule.enabled and matches_rule(notification, rule)
        ]

    def apply(self, notification: Notification) -> list[AppliedRule]:
        """Summaries of every enabled rule matching *notification*."""
        return [
            AppliedRule(rule_id=rule.id, rule_name=rule.name, rule=rule)
            for rule in self.matching(notification)
        ]

    def to_dict(self) -> dict[str, dict]:
        """Persistable id → rule mapping (insertion order preserved)."""
        return {rule_id: rule.model_dump(mode="json") for rule_id, rule in self._rules.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "RuleStore":
        """Rebuild from a persisted mapping; malformed entries are skipped."""
        store = cls()
        for rule_id, raw in (data or {}).items():
            try:
                rule = NotificationRule.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping malformed rule '{rule_id}': {e}")
                continue
            rule.id = rule.id or rule_id
            store._rules[rule.id] = rule
        return store
