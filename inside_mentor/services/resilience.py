from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, TypeVar

from .completion import CompletionError, CompletionErrorKind

logger = logging.getLogger("inside_mentor.ai")

T = TypeVar("T")


def fingerprint(data: Mapping[str, Any]) -> str:
    canonical = json.dumps(dict(data), sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:24]


class ResiliencePolicy:
    """Response cache, request pacing and retry budget shared by AI operations.

    One instance is one upstream quota budget: every operation routed through
    it shares the same spacing clock and the same cache.
    """

    def __init__(
        self,
        *,
        cache_ttl_seconds: float = 300.0,
        min_interval_seconds: float = 2.0,
        max_attempts: int = 3,
        backoff_base_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.cache_ttl_seconds = max(0.0, float(cache_ttl_seconds))
        self.min_interval_seconds = max(0.0, float(min_interval_seconds))
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_base_seconds = max(0.0, float(backoff_base_seconds))
        self._clock = clock
        self._sleep = sleep
        self._cache: Dict[str, Tuple[float, Any]] = {}
        self._last_request_at: Optional[float] = None
        self._pace_lock: Optional[asyncio.Lock] = None

    @staticmethod
    def cache_key(operation: str, data: Mapping[str, Any], scope: Optional[str] = None) -> str:
        prefix = f"user_{scope}_" if scope else ""
        return f"{prefix}{operation}_{fingerprint(data)}"

    def get_cached(self, key: str) -> Any | None:
        cached = self._cache.get(key)
        if cached is None:
            return None
        stored_at, value = cached
        if self._clock() - stored_at >= self.cache_ttl_seconds:
            del self._cache[key]
            return None
        logger.debug("Using cached AI response for %s", key)
        return value

    def store(self, key: str, value: Any) -> None:
        self._cache[key] = (self._clock(), value)

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("AI response cache cleared")

    def cache_stats(self) -> Dict[str, Any]:
        return {"size": len(self._cache), "keys": list(self._cache.keys())}

    @property
    def last_request_at(self) -> Optional[float]:
        return self._last_request_at

    async def wait_turn(self) -> None:
        """Sleep until the minimum spacing since the previous dispatch has passed."""
        if self._pace_lock is None:
            self._pace_lock = asyncio.Lock()
        async with self._pace_lock:
            if self._last_request_at is not None:
                elapsed = self._clock() - self._last_request_at
                delay = self.min_interval_seconds - elapsed
                if delay > 0:
                    logger.info("Rate limiting: waiting %.2fs before next AI request", delay)
                    await self._sleep(delay)
            self._last_request_at = self._clock()

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2 ** (attempt - 1))

    async def run(self, request: Callable[[], Awaitable[T]]) -> T:
        """Dispatch ``request`` with pacing, retrying retryable completion errors."""
        last_error: CompletionError | None = None
        for attempt in range(1, self.max_attempts + 1):
            await self.wait_turn()
            try:
                return await request()
            except CompletionError as exc:
                if not exc.retryable:
                    logger.error("Non-retryable AI error: %s", exc)
                    raise
                last_error = exc
            if attempt < self.max_attempts:
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "AI request failed (attempt %s/%s), retrying in %.1fs: %s",
                    attempt,
                    self.max_attempts,
                    delay,
                    last_error,
                )
                await self._sleep(delay)

        logger.error("AI request failed after %s attempts: %s", self.max_attempts, last_error)
        if last_error is None:
            raise CompletionError(CompletionErrorKind.UNKNOWN, "AI request was never dispatched")
        raise last_error
