from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any, Mapping

TASK_STATUSES = ("todo", "in-progress", "done")
TASK_PRIORITIES = ("low", "medium", "high")
CHAT_ROLES = ("user", "ai")
MOOD_SCORE_FIELDS = ("energy", "focus", "stress")

OWNER_FIELD = "userId"
ANONYMOUS_OWNER = "anonymous"


@dataclass(frozen=True, slots=True)
class EntityKind:
    """Where an entity kind lives and how its lists are ordered."""

    name: str
    collection: str
    order_field: str | None = None
    descending: bool = True
    timestamp_fields: tuple[str, ...] = ()
    default_limit: int | None = None


USERS = EntityKind("user", "users")
TASKS = EntityKind(
    "task",
    "tasks",
    order_field="createdAt",
    timestamp_fields=("createdAt", "dueDate", "completedAt"),
)
MOOD_ENTRIES = EntityKind(
    "mood entry",
    "moodEntries",
    order_field="date",
    timestamp_fields=("date",),
    default_limit=7,
)
JOURNAL_ENTRIES = EntityKind(
    "journal entry",
    "journalEntries",
    order_field="date",
    timestamp_fields=("date",),
    default_limit=10,
)
CHAT_MESSAGES = EntityKind(
    "chat message",
    "chatMessages",
    order_field="timestamp",
    descending=False,
    timestamp_fields=("timestamp",),
)
CHAT_SESSIONS = EntityKind(
    "chat session",
    "chatSessions",
    order_field="lastMessageAt",
    timestamp_fields=("createdAt", "lastMessageAt"),
)
PROGRESS_REPORTS = EntityKind(
    "progress report",
    "progressReports",
    order_field="generatedAt",
    timestamp_fields=("generatedAt",),
)
WEEKLY_REPORTS = EntityKind(
    "weekly report",
    "weeklyReports",
    order_field="generatedAt",
    timestamp_fields=("generatedAt", "weekStart"),
)
USER_ANALYTICS = EntityKind("analytics snapshot", "userAnalytics", timestamp_fields=("updatedAt",))


def check_task_fields(fields: Mapping[str, Any]) -> None:
    status = fields.get("status")
    if status is not None and status not in TASK_STATUSES:
        raise ValueError(f"Unknown task status: {status!r}")
    priority = fields.get("priority")
    if priority is not None and priority not in TASK_PRIORITIES:
        raise ValueError(f"Unknown task priority: {priority!r}")


def check_mood_fields(fields: Mapping[str, Any]) -> None:
    # Scores are accepted at any magnitude; only the type is enforced.
    for name in MOOD_SCORE_FIELDS:
        value = fields.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ValueError(f"Mood score {name!r} must be a number, got {value!r}")


def check_chat_message_fields(fields: Mapping[str, Any]) -> None:
    role = fields.get("type")
    if role is not None and role not in CHAT_ROLES:
        raise ValueError(f"Unknown chat message role: {role!r}")
