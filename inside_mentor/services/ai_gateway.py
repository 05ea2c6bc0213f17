from __future__ import annotations

import copy
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..models import TASK_PRIORITIES
from ..prompts import mentor as prompts
from .completion import AIUnavailableError, CompletionError, TextCompletion
from .resilience import ResiliencePolicy

logger = logging.getLogger("inside_mentor.ai")

_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)

Normalizer = Callable[[Dict[str, Any]], Dict[str, Any]]


def clean_response(text: str) -> str:
    cleaned = _THINK_RE.sub("", text or "").strip()
    cleaned = _FENCE_RE.sub("", cleaned).strip()
    if not cleaned.startswith("{"):
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start != -1 and end > start:
            cleaned = cleaned[start : end + 1]
    return cleaned


def coerce_to_shape(parsed: Any, fallback: Mapping[str, Any]) -> Dict[str, Any]:
    """Fill missing or mistyped keys of ``parsed`` from ``fallback``.

    List-valued keys keep only non-empty strings; a list that ends up empty
    takes the fallback list. Keys the fallback does not know pass through.
    """
    if not isinstance(parsed, dict):
        raise ValueError("AI response is not a JSON object")

    result: Dict[str, Any] = dict(parsed)
    for key, default in fallback.items():
        value = parsed.get(key)
        if isinstance(default, list):
            items: List[str] = []
            if isinstance(value, list):
                items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
            result[key] = items or copy.deepcopy(default)
        elif isinstance(default, str):
            result[key] = value.strip() if isinstance(value, str) and value.strip() else default
        elif value is None or not isinstance(value, type(default)):
            result[key] = copy.deepcopy(default)
    return result


def _time_of_day(now: datetime) -> str:
    if now.hour < 12:
        return "Morning"
    if now.hour < 17:
        return "Afternoon"
    return "Evening"


def _field(record: Mapping[str, Any] | None, key: str) -> str:
    if not record:
        return ""
    value = record.get(key)
    return "" if value is None else str(value)


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


class AIGateway:
    """Templated generation operations over one completion client.

    Every generation operation resolves to a value of its documented shape:
    failures of any kind become the operation's fallback. ``ask`` is the
    only operation that raises.
    """

    def __init__(
        self,
        client: Optional[TextCompletion],
        policy: Optional[ResiliencePolicy] = None,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.client = client
        self.policy = policy or ResiliencePolicy()
        self._now = now or (lambda: datetime.now(timezone.utc))

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def _generate(
        self,
        operation: str,
        fingerprint_data: Mapping[str, Any],
        prompt_builder: Callable[[], str],
        fallback: Dict[str, Any],
        *,
        scope: Optional[str] = None,
        normalizer: Normalizer | None = None,
    ) -> Dict[str, Any]:
        key = self.policy.cache_key(operation, fingerprint_data, scope)
        cached = self.policy.get_cached(key)
        if cached is not None:
            return cached

        if self.client is None:
            logger.debug("AI not configured, using fallback for %s", operation)
            self.policy.store(key, fallback)
            return fallback

        client = self.client
        prompt = prompt_builder()
        try:
            text = await self.policy.run(lambda: client.generate(prompt))
            result = coerce_to_shape(json.loads(clean_response(text)), fallback)
            if normalizer is not None:
                result = normalizer(result)
        except CompletionError as exc:
            logger.warning("AI %s failed (%s), using fallback", operation, exc.kind.value)
            result = fallback
        except (ValueError, TypeError) as exc:
            logger.warning("AI %s returned unusable output (%s), using fallback", operation, exc)
            result = fallback
        except Exception:
            logger.exception("Unexpected error in AI %s, using fallback", operation)
            result = fallback

        self.policy.store(key, result)
        return result

    async def parse_task_input(self, raw_text: str) -> Dict[str, Any]:
        fallback = prompts.task_parse_fallback(raw_text)

        def normalize(result: Dict[str, Any]) -> Dict[str, Any]:
            priority = str(result.get("priority") or "").strip().lower()
            result["priority"] = priority if priority in TASK_PRIORITIES else "medium"
            return {key: value for key, value in result.items() if value not in (None, "")}

        return await self._generate(
            "parseTask",
            {"text": raw_text},
            lambda: prompts.build_task_parse_prompt(raw_text, self._now().date().isoformat()),
            fallback,
            normalizer=normalize,
        )

    async def generate_dashboard_greeting(
        self,
        user_name: str,
        recent_tasks: Sequence[Mapping[str, Any]],
        recent_mood_logs: Sequence[Mapping[str, Any]],
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        tasks = list(recent_tasks or ())
        moods = list(recent_mood_logs or ())
        fingerprint_data = {
            "userName": user_name,
            "taskCount": len(tasks),
            "moodCount": len(moods),
            "lastTask": _field(tasks[0] if tasks else None, "title"),
            "lastMood": _field(moods[0] if moods else None, "mood"),
        }
        return await self._generate(
            "greeting",
            fingerprint_data,
            lambda: prompts.build_greeting_prompt(user_name, _time_of_day(self._now()), tasks, moods),
            prompts.greeting_fallback(user_name),
            scope=user_id,
        )

    async def generate_mood_insight(
        self,
        mood_logs: Sequence[Mapping[str, Any]],
        current_mood: str,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        logs = list(mood_logs or ())
        fingerprint_data = {
            "currentMood": current_mood,
            "moodCount": len(logs),
            "recentMoods": ",".join(_field(entry, "mood") for entry in logs[:3]),
        }
        return await self._generate(
            "moodInsight",
            fingerprint_data,
            lambda: prompts.build_mood_insight_prompt(
                {"mood": current_mood, "timestamp": self._now().isoformat()},
                logs[:3],
            ),
            copy.deepcopy(prompts.MOOD_INSIGHT_FALLBACK),
            scope=user_id,
        )

    async def sort_tasks_by_mood(
        self,
        tasks: Sequence[Mapping[str, Any]],
        mood_logs: Sequence[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        task_list = list(tasks or ())
        moods = list(mood_logs or ())
        task_ids = [_field(task, "id") for task in task_list]

        def normalize(result: Dict[str, Any]) -> Dict[str, Any]:
            known = set(task_ids)
            ordered: List[str] = []
            for task_id in result.get("sortedTasks", []):
                if task_id in known and task_id not in ordered:
                    ordered.append(task_id)
            ordered.extend(task_id for task_id in task_ids if task_id not in ordered)
            result["sortedTasks"] = ordered
            return result

        return await self._generate(
            "sortTasks",
            {
                "tasks": [[_field(task, "id"), _field(task, "status"), _field(task, "priority")] for task in task_list],
                "moods": [[_field(entry, "mood"), _field(entry, "energy")] for entry in moods[:3]],
            },
            lambda: prompts.build_task_sort_prompt(task_list, moods),
            prompts.task_sort_fallback(task_ids),
            normalizer=normalize,
        )

    async def break_down_task(self, task_title: str) -> Dict[str, Any]:
        return await self._generate(
            "breakdown",
            {"title": task_title.strip().lower()},
            lambda: prompts.build_task_breakdown_prompt(task_title),
            copy.deepcopy(prompts.TASK_BREAKDOWN_FALLBACK),
        )

    async def generate_journal_feedback(self, current_entry: str, past_entries: Sequence[str]) -> Dict[str, Any]:
        past = [str(entry) for entry in past_entries or ()][:3]
        return await self._generate(
            "journalFeedback",
            {"entry": current_entry, "past": past},
            lambda: prompts.build_journal_feedback_prompt(current_entry, past),
            copy.deepcopy(prompts.JOURNAL_FEEDBACK_FALLBACK),
        )

    async def generate_progress_report(
        self,
        mood_entries: Sequence[Mapping[str, Any]],
        tasks: Sequence[Mapping[str, Any]],
        journal_entries: Sequence[Mapping[str, Any]],
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        moods = list(mood_entries or ())[:7]
        task_list = list(tasks or ())[:10]
        journals = list(journal_entries or ())[:5]
        return await self._generate(
            "progressReport",
            _report_fingerprint(moods, task_list, journals),
            lambda: prompts.build_progress_report_prompt(moods, task_list, journals),
            copy.deepcopy(prompts.PROGRESS_REPORT_FALLBACK),
            scope=user_id,
        )

    async def generate_weekly_report(
        self,
        mood_entries: Sequence[Mapping[str, Any]],
        tasks: Sequence[Mapping[str, Any]],
        journal_entries: Sequence[Mapping[str, Any]],
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        moods = list(mood_entries or ())
        task_list = list(tasks or ())
        journals = list(journal_entries or ())
        return await self._generate(
            "weeklyReport",
            _report_fingerprint(moods, task_list, journals),
            lambda: prompts.build_weekly_report_prompt(moods, task_list, journals),
            copy.deepcopy(prompts.WEEKLY_REPORT_FALLBACK),
            scope=user_id,
        )

    async def generate_mentor_response(
        self,
        user_message: str,
        context: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        context = context if isinstance(context, Mapping) else {}
        latest_mood = _field(context, "latestMood")
        raw_tasks = context.get("tasks")
        tasks = list(raw_tasks) if isinstance(raw_tasks, (list, tuple)) else []
        last_entry = _field(context, "lastJournalEntry")
        streak = _as_int(context.get("streak"))
        return await self._generate(
            "mentor",
            {
                "message": user_message,
                "mood": latest_mood,
                "taskCount": len(tasks),
                "journal": last_entry[:200],
                "streak": streak,
            },
            lambda: prompts.build_mentor_prompt(user_message, latest_mood, tasks, last_entry, streak),
            copy.deepcopy(prompts.MENTOR_FALLBACK),
            scope=user_id,
        )

    async def ask(self, prompt: str) -> str:
        """Raw completion through the shared pacing and retry budget. Not cached."""
        if self.client is None:
            raise AIUnavailableError("Gemini API key is not configured")
        client = self.client
        return await self.policy.run(lambda: client.generate(prompt))

    def clear_cache(self) -> None:
        self.policy.clear_cache()

    def cache_stats(self) -> Dict[str, Any]:
        return self.policy.cache_stats()


def _report_fingerprint(
    moods: Sequence[Mapping[str, Any]],
    tasks: Sequence[Mapping[str, Any]],
    journals: Sequence[Mapping[str, Any]],
) -> Dict[str, Any]:
    return {
        "moods": [[_field(entry, "mood"), _field(entry, "date")] for entry in moods],
        "tasks": [[_field(task, "title"), _field(task, "status")] for task in tasks],
        "journals": [_field(entry, "id") or _field(entry, "date") for entry in journals],
    }
