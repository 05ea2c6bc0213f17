from __future__ import annotations

from enum import Enum


class StoreErrorKind(str, Enum):
    FAILED_PRECONDITION = "failed-precondition"
    PERMISSION_DENIED = "permission-denied"
    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not-found"
    INVALID_ARGUMENT = "invalid-argument"
    UNKNOWN = "unknown"


class DocumentStoreError(RuntimeError):
    """Document store failure tagged with a closed error kind."""

    def __init__(self, kind: StoreErrorKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message


class IdentityRequiredError(PermissionError):
    """Raised when a write needs an owning user and none is resolved."""
