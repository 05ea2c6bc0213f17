from __future__ import annotations

import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from inside_mentor.analytics import build_snapshot, checkin_streak  # noqa: E402
from inside_mentor.auth import AuthError, AuthService, AuthSession, AuthUser  # noqa: E402
from inside_mentor.persistence import PersistenceGateway  # noqa: E402
from inside_mentor.storage.errors import DocumentStoreError, StoreErrorKind  # noqa: E402


NOW = datetime(2025, 7, 10, 18, 0, tzinfo=timezone.utc)


def test_snapshot_counts_tasks_and_averages_scores() -> None:
    tasks = [{"status": "done"}, {"status": "todo"}, {"status": "done"}, {"status": "in-progress"}]
    moods = [
        {"mood": "Calm", "energy": 6, "focus": 8, "stress": 2, "date": NOW},
        {"mood": "Tired", "energy": 3, "focus": 4, "stress": 7, "date": NOW - timedelta(days=1)},
        {"mood": "Okay", "energy": "n/a", "date": NOW - timedelta(days=3)},
    ]

    snapshot = build_snapshot(tasks, moods, [{"title": "j"}], now=NOW)

    assert snapshot["totalTasks"] == 4
    assert snapshot["tasksByStatus"] == {"todo": 1, "in-progress": 1, "done": 2}
    assert snapshot["completionRate"] == 0.5
    assert snapshot["averageEnergy"] == 4.5
    assert snapshot["averageFocus"] == 6.0
    assert snapshot["averageStress"] == 4.5
    assert snapshot["streak"] == 2
    assert snapshot["journalCount"] == 1
    assert snapshot["lastMood"] == "Calm"


def test_snapshot_of_empty_history() -> None:
    snapshot = build_snapshot([], [], [], now=NOW)

    assert snapshot["completionRate"] == 0.0
    assert snapshot["averageEnergy"] is None
    assert snapshot["streak"] == 0


def test_streak_may_end_yesterday() -> None:
    today = date(2025, 7, 10)
    days = [date(2025, 7, 9), date(2025, 7, 8), date(2025, 7, 6)]

    assert checkin_streak(days, today) == 2
    assert checkin_streak([date(2025, 7, 7)], today) == 0


def test_session_not_ready_after_timeout() -> None:
    session = AuthSession()

    assert asyncio.run(session.wait_until_ready(0.01)) is False
    assert session.current_user_id() is None


def test_session_notifies_subscribers_until_unsubscribed() -> None:
    session = AuthSession()
    seen: list[Optional[str]] = []
    unsubscribe = session.subscribe(lambda user: seen.append(user.uid if user else None))

    session.set_user(AuthUser(uid="u1"))
    unsubscribe()
    session.set_user(None)

    assert seen == ["u1"]
    assert asyncio.run(session.wait_until_ready(0.01)) is True


class _FakeIdentityClient:
    def __init__(self, *, error: AuthError | None = None) -> None:
        self.error = error

    async def sign_in(self, email: str, password: str) -> AuthUser:
        if self.error:
            raise self.error
        return AuthUser(uid="firebase-uid", email=email)

    async def register(self, email: str, password: str) -> AuthUser:
        if self.error:
            raise self.error
        return AuthUser(uid="new-uid", email=email)


class _RejectingStore:
    backend_name = "rejecting"
    configured = True

    async def init(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        raise DocumentStoreError(StoreErrorKind.PERMISSION_DENIED, "Missing or insufficient permissions")


def _service(identity: Any = None, store: Any = None) -> tuple[AuthService, AuthSession, PersistenceGateway]:
    session = AuthSession()
    persistence = PersistenceGateway(store, session=session)
    return AuthService(persistence, session, identity=identity), session, persistence


def test_student_sign_in_uses_directory_and_sets_session() -> None:
    service, session, persistence = _service()

    result = asyncio.run(service.authenticate_student("STU002", "1999-08-22"))

    assert result.success
    assert result.user is not None and result.user["name"] == "Jane Smith"
    assert session.current_user_id() == "STU002"
    assert asyncio.run(persistence.get_user("STU002")) is not None


def test_student_sign_in_rejects_wrong_birth_date() -> None:
    service, session, _ = _service()

    result = asyncio.run(service.authenticate_student("STU002", "2000-01-01"))

    assert not result.success
    assert result.error == "Invalid student ID or date of birth"
    assert session.current_user_id() is None


def test_student_registration_survives_store_rejection() -> None:
    service, session, _ = _service(store=_RejectingStore())

    result = asyncio.run(service.register_student({"studentId": "STU900", "name": "Ada"}))

    assert result.success
    assert result.user is not None
    assert result.user["institute"] == "Default Institute"
    assert result.user["year"] == "1st Year"
    assert session.current_user_id() == "STU900"


def test_email_sign_in_requires_profile() -> None:
    service, session, persistence = _service(identity=_FakeIdentityClient())

    missing = asyncio.run(service.sign_in_with_email("a@b.c", "secret"))
    asyncio.run(persistence.create_user({"id": "firebase-uid", "name": "Ada"}))
    found = asyncio.run(service.sign_in_with_email("a@b.c", "secret"))

    assert missing.error == "User data not found"
    assert found.success
    assert session.current_user_id() == "firebase-uid"


def test_email_registration_failure_is_reported() -> None:
    service, _, _ = _service(identity=_FakeIdentityClient(error=AuthError("EMAIL_EXISTS")))

    result = asyncio.run(service.register_with_email("a@b.c", "secret", {"name": "Ada"}))

    assert not result.success
    assert result.details == {"code": "EMAIL_EXISTS"}


def test_email_sign_in_without_identity_provider() -> None:
    service, _, _ = _service()

    result = asyncio.run(service.sign_in_with_email("a@b.c", "secret"))

    assert not result.success


def test_sign_out_clears_identity() -> None:
    service, session, _ = _service()
    asyncio.run(service.authenticate_student("STU001", "2000-05-15"))

    asyncio.run(service.sign_out())

    assert session.current_user_id() is None


@pytest.mark.parametrize("student_id", ["", "   "])
def test_student_registration_needs_an_id(student_id: str) -> None:
    service, _, _ = _service()

    result = asyncio.run(service.register_student({"studentId": student_id}))

    assert not result.success
