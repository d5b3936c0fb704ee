"""
Priority Resolver — Prioritätsbestimmung für Benachrichtigungen

Precedence: explicit priority → first matching enabled rule → urgency
keyword heuristic. Pure functions; no side effects.
"""

from models.notification import Notification, Priority
from services.notification_rules import RuleStore

# Keyword tiers (Swedish + English household vocabulary)
CRITICAL_KEYWORDS = ("alarm", "kritisk", "critical", "nöd", "emergency", "brand", "fire", "intrång")
HIGH_KEYWORDS = ("varning", "warning", "fel", "error", "problem", "failed")
NORMAL_KEYWORDS = ("uppdatering", "update", "ändring", "change", "complete")

# (minimum score, priority), checked top-down
URGENCY_THRESHOLDS = (
    (0.8, Priority.CRITICAL),
    (0.6, Priority.HIGH),
    (0.4, Priority.NORMAL),
    (0.2, Priority.LOW),
)


def analyze_urgency(notification: Notification) -> float:
    """Urgency score in [0, 1] from a keyword scan of title + message."""
    content = notification.content

    if any(word in content for word in CRITICAL_KEYWORDS):
        return 1.0
    if any(word in content for word in HIGH_KEYWORDS):
        return 0.7
    if any(word in content for word in NORMAL_KEYWORDS):
        return 0.5
    return 0.3


def priority_from_score(score: float) -> Priority:
    for threshold, priority in URGENCY_THRESHOLDS:
        if score >= threshold:
            return priority
    return Priority.INFO


def determine_priority(notification: Notification, rules: RuleStore) -> Priority:
    """Resolve the priority of a freshly enriched notification."""
    if notification.priority is not None:
        return Priority(notification.priority)

    matched = rules.matching(notification)
    if matched:
        return matched[0].priority

    return priority_from_score(analyze_urgency(notification))
