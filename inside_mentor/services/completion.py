from __future__ import annotations

from enum import Enum
from typing import Protocol


class CompletionErrorKind(str, Enum):
    OVERLOADED = "overloaded"
    RATE_LIMITED = "rate-limited"
    UNAVAILABLE = "unavailable"
    QUOTA_EXCEEDED = "quota-exceeded"
    BLOCKED = "blocked"
    EMPTY = "empty"
    INVALID_REQUEST = "invalid-request"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset(
    {
        CompletionErrorKind.OVERLOADED,
        CompletionErrorKind.RATE_LIMITED,
        CompletionErrorKind.UNAVAILABLE,
        CompletionErrorKind.QUOTA_EXCEEDED,
    }
)


class CompletionError(RuntimeError):
    def __init__(self, kind: CompletionErrorKind, message: str) -> None:
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class AIUnavailableError(RuntimeError):
    """No completion credential is configured."""


class TextCompletion(Protocol):
    async def generate(self, prompt: str) -> str: ...
