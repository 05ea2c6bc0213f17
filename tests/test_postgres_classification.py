from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

asyncpg = pytest.importorskip("asyncpg")

from inside_mentor.storage.errors import StoreErrorKind  # noqa: E402
from inside_mentor.storage.postgres_store import PostgresDocumentStore, _classify  # noqa: E402


@pytest.mark.parametrize(
    ("exc", "kind"),
    [
        (asyncpg.exceptions.InsufficientPrivilegeError("permission denied for table documents"), StoreErrorKind.PERMISSION_DENIED),
        (asyncpg.exceptions.ConnectionDoesNotExistError("connection was closed"), StoreErrorKind.UNAVAILABLE),
        (asyncpg.exceptions.ObjectNotInPrerequisiteStateError("not ready"), StoreErrorKind.FAILED_PRECONDITION),
        (asyncpg.exceptions.InvalidTextRepresentationError("bad json"), StoreErrorKind.INVALID_ARGUMENT),
        (asyncio.TimeoutError(), StoreErrorKind.UNAVAILABLE),
        (ConnectionRefusedError("refused"), StoreErrorKind.UNAVAILABLE),
        (RuntimeError("boom"), StoreErrorKind.UNKNOWN),
    ],
)
def test_driver_errors_map_to_store_error_kinds(exc: BaseException, kind: StoreErrorKind) -> None:
    assert _classify(exc).kind is kind


def test_empty_dsn_is_rejected() -> None:
    with pytest.raises(ValueError):
        PostgresDocumentStore("   ")
