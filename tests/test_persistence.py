from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from inside_mentor.persistence import PersistenceGateway  # noqa: E402
from inside_mentor.storage.base import Document, Query  # noqa: E402
from inside_mentor.storage.errors import DocumentStoreError, IdentityRequiredError, StoreErrorKind  # noqa: E402
from inside_mentor.storage.utils import sort_records  # noqa: E402


class _FakeIdentity:
    def __init__(self, user_id: Optional[str]) -> None:
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id


class _FakeStore:
    backend_name = "fake"

    def __init__(self) -> None:
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.fail: Dict[str, DocumentStoreError] = {}
        self.ordered_queries_need_index = False
        self.queries: List[Query] = []
        self._counter = 0

    @property
    def configured(self) -> bool:
        return True

    async def init(self) -> None:
        if "init" in self.fail:
            raise self.fail["init"]

    async def close(self) -> None:
        return None

    def _check(self, op: str) -> None:
        if op in self.fail:
            raise self.fail[op]

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        self._check("add")
        self._counter += 1
        doc_id = f"doc{self._counter}"
        self.docs.setdefault(collection, {})[doc_id] = dict(data)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._check("set")
        self.docs.setdefault(collection, {})[doc_id] = dict(data)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check("get")
        data = self.docs.get(collection, {}).get(doc_id)
        return Document(doc_id, dict(data)) if data is not None else None

    async def update(self, collection: str, doc_id: str, updates: Dict[str, Any]) -> None:
        self._check("update")
        if doc_id not in self.docs.get(collection, {}):
            raise DocumentStoreError(StoreErrorKind.NOT_FOUND, doc_id)
        self.docs[collection][doc_id].update(updates)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._check("delete")
        self.docs.get(collection, {}).pop(doc_id, None)

    async def query(self, collection: str, query: Query) -> List[Document]:
        self.queries.append(query)
        self._check("query")
        if query.order_by and self.ordered_queries_need_index:
            raise DocumentStoreError(StoreErrorKind.FAILED_PRECONDITION, "The query requires an index")
        documents = [
            Document(doc_id, dict(data))
            for doc_id, data in self.docs.get(collection, {}).items()
            if all(data.get(f.field) == f.value for f in query.filters)
        ]
        if query.order_by:
            records = sort_records([d.to_record() for d in documents], query.order_by, descending=query.descending)
            documents = [Document(r.pop("id"), r) for r in records]
        if query.limit is not None:
            documents = documents[: query.limit]
        return documents


def test_add_task_then_list_in_mirror_mode_round_trips() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> List[Dict[str, Any]]:
        await gateway.add_task({"title": "Read Ch.3", "priority": "medium", "status": "todo"}, user_id="u1")
        return await gateway.get_tasks("u1")

    tasks = asyncio.run(scenario())

    assert len(tasks) == 1
    task = tasks[0]
    assert task["title"] == "Read Ch.3"
    assert task["priority"] == "medium"
    assert task["status"] == "todo"
    assert task["userId"] == "u1"
    assert task["id"].startswith("local-")
    assert isinstance(task["createdAt"], datetime)
    assert gateway.storage_mode() == "mirror"


def test_absent_fields_are_stripped_before_write() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> Dict[str, Any]:
        await gateway.add_journal_entry({"title": "Day 1", "content": "", "aiFeedback": None}, user_id="u1")
        return (await gateway.get_journal_entries("u1"))[0]

    entry = asyncio.run(scenario())

    assert "aiFeedback" not in entry
    assert entry["content"] == ""


@pytest.mark.parametrize(
    "write",
    [
        lambda g: g.add_task({"title": "x"}),
        lambda g: g.add_mood_entry({"mood": "Calm", "energy": 5}),
        lambda g: g.add_journal_entry({"title": "t", "content": "c"}),
        lambda g: g.add_chat_session({"title": "s"}),
    ],
)
def test_owned_writes_without_identity_are_rejected(write) -> None:  # type: ignore[no-untyped-def]
    gateway = PersistenceGateway(session=_FakeIdentity(None))

    with pytest.raises(IdentityRequiredError):
        asyncio.run(write(gateway))


def test_chat_message_without_identity_is_kept_locally() -> None:
    gateway = PersistenceGateway(_FakeStore(), session=_FakeIdentity(None))

    async def scenario() -> tuple[str, List[Dict[str, Any]]]:
        message_id = await gateway.add_chat_message({"type": "user", "content": "hi"})
        return message_id, await gateway.get_chat_messages()

    message_id, messages = asyncio.run(scenario())

    assert message_id.startswith("local-")
    assert messages == []
    assert gateway.mirror.records("chatMessages", "anonymous")[0]["content"] == "hi"


def test_identity_comes_from_session_when_not_given() -> None:
    gateway = PersistenceGateway(session=_FakeIdentity("u7"))

    async def scenario() -> List[Dict[str, Any]]:
        await gateway.add_mood_entry({"mood": "Calm", "energy": 6, "focus": 7, "stress": 2})
        return await gateway.get_mood_entries()

    entries = asyncio.run(scenario())

    assert entries[0]["userId"] == "u7"


def test_mood_scores_must_be_numbers_but_are_not_clamped() -> None:
    gateway = PersistenceGateway()

    with pytest.raises(ValueError):
        asyncio.run(gateway.add_mood_entry({"mood": "Calm", "energy": "high"}, user_id="u1"))
    with pytest.raises(ValueError):
        asyncio.run(gateway.add_mood_entry({"mood": "Calm", "energy": True}, user_id="u1"))

    async def scenario() -> List[Dict[str, Any]]:
        await gateway.add_mood_entry({"mood": "Wired", "energy": 14}, user_id="u1")
        return await gateway.get_mood_entries("u1")

    assert asyncio.run(scenario())[0]["energy"] == 14


def test_session_active_flag_last_update_wins() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> List[Dict[str, Any]]:
        session_id = await gateway.add_chat_session({"title": "Exam prep"}, user_id="u1")
        await gateway.update_chat_session(session_id, {"isActive": True})
        await gateway.update_chat_session(session_id, {"isActive": False})
        return await gateway.get_chat_sessions("u1")

    sessions = asyncio.run(scenario())

    assert len(sessions) == 1
    assert sessions[0]["isActive"] is False


def test_switch_active_session_clears_other_flags() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> tuple[str, Dict[str, bool]]:
        first = await gateway.add_chat_session({"title": "one"}, user_id="u1")
        await gateway.add_chat_session({"title": "two"}, user_id="u1")
        await gateway.switch_active_session(first, user_id="u1")
        sessions = await gateway.get_chat_sessions("u1")
        return first, {s["id"]: s["isActive"] for s in sessions}

    first, flags = asyncio.run(scenario())

    assert flags.pop(first) is True
    assert list(flags.values()) == [False]


def test_update_task_to_done_stamps_completion_and_can_reopen() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> tuple[Dict[str, Any], Dict[str, Any]]:
        task_id = await gateway.add_task({"title": "Lab report"}, user_id="u1")
        await gateway.move_task(task_id, "done")
        done = (await gateway.get_tasks("u1"))[0]
        await gateway.move_task(task_id, "in-progress")
        reopened = (await gateway.get_tasks("u1"))[0]
        return done, reopened

    done, reopened = asyncio.run(scenario())

    assert done["status"] == "done"
    assert isinstance(done["completedAt"], datetime)
    assert reopened["status"] == "in-progress"


def test_unknown_task_status_is_rejected() -> None:
    gateway = PersistenceGateway()

    with pytest.raises(ValueError):
        asyncio.run(gateway.add_task({"title": "x", "status": "blocked"}, user_id="u1"))


def test_index_precondition_falls_back_to_in_memory_sort() -> None:
    store = _FakeStore()
    gateway = PersistenceGateway(store)
    base = datetime(2025, 7, 1, tzinfo=timezone.utc)
    # Stored out of order on purpose; two entries share a timestamp.
    dates = [base + timedelta(days=2), base, base + timedelta(days=5), base + timedelta(days=2), base + timedelta(days=1)]

    async def scenario() -> tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        for index, when in enumerate(dates):
            await gateway.add_mood_entry({"mood": f"m{index}", "date": when}, user_id="u1")
        ordered = await gateway.get_mood_entries("u1", limit=3)
        store.ordered_queries_need_index = True
        fallback = await gateway.get_mood_entries("u1", limit=3)
        return ordered, fallback

    ordered, fallback = asyncio.run(scenario())

    assert [e["mood"] for e in fallback] == ["m2", "m0", "m3"]
    assert [e["mood"] for e in fallback] == [e["mood"] for e in ordered]
    assert store.queries[-1].order_by is None


def test_chat_messages_fallback_sort_is_ascending() -> None:
    store = _FakeStore()
    store.ordered_queries_need_index = True
    gateway = PersistenceGateway(store)
    base = datetime(2025, 7, 1, 9, 0, tzinfo=timezone.utc)

    async def scenario() -> List[Dict[str, Any]]:
        await gateway.add_chat_message({"type": "ai", "content": "second", "timestamp": base + timedelta(minutes=1)}, user_id="u1")
        await gateway.add_chat_message({"type": "user", "content": "first", "timestamp": base}, user_id="u1")
        return await gateway.get_chat_messages("u1")

    assert [m["content"] for m in asyncio.run(scenario())] == ["first", "second"]


def test_chat_permission_denied_on_create_uses_mirror() -> None:
    store = _FakeStore()
    store.fail["add"] = DocumentStoreError(StoreErrorKind.PERMISSION_DENIED, "Missing or insufficient permissions")
    gateway = PersistenceGateway(store)

    message_id = asyncio.run(gateway.add_chat_message({"type": "user", "content": "hello"}, user_id="u1"))

    assert message_id.startswith("local-")
    assert gateway.mirror.records("chatMessages", "u1")[0]["content"] == "hello"


def test_task_permission_denied_on_create_propagates() -> None:
    store = _FakeStore()
    store.fail["add"] = DocumentStoreError(StoreErrorKind.PERMISSION_DENIED, "Missing or insufficient permissions")
    gateway = PersistenceGateway(store)

    with pytest.raises(DocumentStoreError) as exc_info:
        asyncio.run(gateway.add_task({"title": "x"}, user_id="u1"))
    assert exc_info.value.kind is StoreErrorKind.PERMISSION_DENIED


def test_failed_list_returns_empty_collection() -> None:
    store = _FakeStore()
    store.fail["query"] = DocumentStoreError(StoreErrorKind.UNAVAILABLE, "backend down")
    gateway = PersistenceGateway(store)

    assert asyncio.run(gateway.get_tasks("u1")) == []


def test_failed_update_propagates() -> None:
    store = _FakeStore()
    gateway = PersistenceGateway(store)

    with pytest.raises(DocumentStoreError) as exc_info:
        asyncio.run(gateway.update_task("missing", {"status": "done"}))
    assert exc_info.value.kind is StoreErrorKind.NOT_FOUND


def test_remote_timestamps_are_normalized_on_read() -> None:
    store = _FakeStore()
    store.docs["journalEntries"] = {
        "a": {"userId": "u1", "title": "iso", "date": "2025-07-02T10:00:00Z"},
        "b": {"userId": "u1", "title": "millis", "date": 1751364000000},
    }
    gateway = PersistenceGateway(store)

    entries = asyncio.run(gateway.get_journal_entries("u1"))

    assert [e["title"] for e in entries] == ["iso", "millis"]
    assert all(isinstance(e["date"], datetime) and e["date"].tzinfo is not None for e in entries)
    assert entries[1]["date"] == datetime(2025, 7, 1, 10, 0, tzinfo=timezone.utc)


def test_missing_order_timestamp_defaults_to_now_on_read() -> None:
    store = _FakeStore()
    store.docs["moodEntries"] = {"m1": {"userId": "u1", "mood": "Calm"}}
    store.docs["tasks"] = {"t1": {"userId": "u1", "title": "No stamp", "dueDate": None}}
    gateway = PersistenceGateway(store)
    before = datetime.now(timezone.utc)

    entries = asyncio.run(gateway.get_mood_entries("u1"))
    tasks = asyncio.run(gateway.get_tasks("u1"))

    after = datetime.now(timezone.utc)
    assert before <= entries[0]["date"] <= after
    assert before <= tasks[0]["createdAt"] <= after
    assert tasks[0]["dueDate"] is None
    assert "completedAt" not in tasks[0]


def test_init_failure_switches_to_mirror() -> None:
    store = _FakeStore()
    store.fail["init"] = DocumentStoreError(StoreErrorKind.UNAVAILABLE, "cannot connect")
    gateway = PersistenceGateway(store)

    async def scenario() -> List[Dict[str, Any]]:
        await gateway.init()
        await gateway.add_task({"title": "offline"}, user_id="u1")
        return await gateway.get_tasks("u1")

    tasks = asyncio.run(scenario())

    assert gateway.storage_mode() == "mirror"
    assert tasks[0]["title"] == "offline"
    assert store.docs == {}


def test_clear_chat_messages_counts_removed() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> tuple[int, List[Dict[str, Any]]]:
        for text in ("a", "b", "c"):
            await gateway.add_chat_message({"type": "user", "content": text}, user_id="u1")
        removed = await gateway.clear_chat_messages("u1")
        return removed, await gateway.get_chat_messages("u1")

    removed, remaining = asyncio.run(scenario())

    assert removed == 3
    assert remaining == []


def test_user_profile_and_analytics_are_keyed_by_user_id() -> None:
    gateway = PersistenceGateway()

    async def scenario() -> tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        await gateway.create_user({"id": "STU001", "name": "John Doe"})
        await gateway.update_user("STU001", {"department": "Physics"})
        await gateway.save_user_analytics({"streak": 3}, user_id="STU001")
        return await gateway.get_user("STU001"), await gateway.get_user_analytics("STU001")

    user, analytics = asyncio.run(scenario())

    assert user is not None and user["department"] == "Physics"
    assert analytics is not None and analytics["streak"] == 3
    assert isinstance(analytics["updatedAt"], datetime)
