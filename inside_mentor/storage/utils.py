from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping

import aiosqlite

_EPOCH_MILLIS_THRESHOLD = 100_000_000_000
_SORT_FLOOR = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    converter = getattr(value, "to_datetime", None)
    if callable(converter):
        converted = converter()
        if isinstance(converted, datetime):
            return _aware(converted)
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _aware(datetime.fromisoformat(text))
        except ValueError:
            pass
        try:
            return parse_timestamp(float(text))
        except ValueError:
            return None
    return None


def normalize_timestamp(value: Any) -> datetime:
    """Coerce any stored timestamp encoding into an aware UTC datetime.

    Accepts datetimes, dates, objects exposing ``to_datetime()``, epoch
    seconds or milliseconds, and ISO-8601 strings. Anything else is "now".
    """
    parsed = parse_timestamp(value)
    return parsed if parsed is not None else utcnow()


def normalize_record(
    record: Dict[str, Any],
    timestamp_fields: Iterable[str],
    *,
    required: str | None = None,
) -> Dict[str, Any]:
    """Normalize timestamp fields in place.

    ``required`` is always filled, with "now" when it is missing; other
    fields are only converted when present.
    """
    for name in timestamp_fields:
        if name == required or record.get(name) is not None:
            record[name] = normalize_timestamp(record.get(name))
    return record


def strip_absent(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None; falsy values such as 0 or "" are kept."""
    return {key: value for key, value in payload.items() if value is not None}


def sort_records(records: List[Dict[str, Any]], field: str, *, descending: bool) -> List[Dict[str, Any]]:
    def _key(record: Dict[str, Any]) -> datetime:
        parsed = parse_timestamp(record.get(field))
        return parsed if parsed is not None else _SORT_FLOOR

    # sorted() is stable for reverse=True as well, so ties keep retrieval order.
    return sorted(records, key=_key, reverse=descending)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return _aware(value).isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, tuple)):
        return list(value)
    raise TypeError(f"Value of type {type(value).__name__} is not JSON serializable")


def encode_document(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), ensure_ascii=False, default=_json_default)


def encode_value(value: Any) -> Any:
    """Encode a single filter value the same way documents are encoded."""
    return json.loads(json.dumps(value, default=_json_default))


def decode_document(raw: str | bytes | Mapping[str, Any] | None) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    parsed = json.loads(raw)
    return parsed if isinstance(parsed, dict) else {}


def _sqlite_busy_timeout_ms() -> int:
    raw = os.getenv("DOCUMENT_STORE_SQLITE_BUSY_TIMEOUT_MS", "5000").strip()
    try:
        timeout = int(raw)
    except ValueError:
        timeout = 5000
    return max(0, min(timeout, 60000))


@asynccontextmanager
async def _sqlite_connection(db_path: str | Path) -> AsyncIterator[aiosqlite.Connection]:
    async with aiosqlite.connect(db_path) as db:
        timeout_ms = _sqlite_busy_timeout_ms()
        if timeout_ms > 0:
            await db.execute(f"PRAGMA busy_timeout={timeout_ms}")
        yield db
