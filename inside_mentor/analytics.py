from __future__ import annotations

import numbers
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .models import MOOD_SCORE_FIELDS, TASK_STATUSES
from .storage.utils import normalize_timestamp, parse_timestamp


def _average(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def checkin_streak(days: Iterable[date], today: date) -> int:
    """Consecutive check-in days ending today, or yesterday if today has none yet."""
    seen = set(days)
    cursor = today if today in seen else today - timedelta(days=1)
    streak = 0
    while cursor in seen:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def build_snapshot(
    tasks: Sequence[Mapping[str, Any]],
    moods: Sequence[Mapping[str, Any]],
    journals: Sequence[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    current = normalize_timestamp(now)

    by_status = {status: 0 for status in TASK_STATUSES}
    for task in tasks:
        status = task.get("status")
        if status in by_status:
            by_status[status] += 1
    total = len(tasks)
    completion_rate = round(by_status["done"] / total, 4) if total else 0.0

    scores: Dict[str, List[float]] = {name: [] for name in MOOD_SCORE_FIELDS}
    checkin_days = []
    for entry in moods:
        for name in MOOD_SCORE_FIELDS:
            value = entry.get(name)
            if isinstance(value, numbers.Real) and not isinstance(value, bool):
                scores[name].append(float(value))
        stamp = parse_timestamp(entry.get("date"))
        if stamp is not None:
            checkin_days.append(stamp.date())

    return {
        "totalTasks": total,
        "tasksByStatus": by_status,
        "completedTasks": by_status["done"],
        "completionRate": completion_rate,
        "moodCheckins": len(moods),
        "averageEnergy": _average(scores["energy"]),
        "averageFocus": _average(scores["focus"]),
        "averageStress": _average(scores["stress"]),
        "streak": checkin_streak(checkin_days, current.date()),
        "journalCount": len(journals),
        "lastMood": moods[0].get("mood") if moods else None,
    }
