from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("inside_mentor.auth")


@dataclass(slots=True)
class AuthUser:
    uid: str
    email: str = ""
    id_token: str = ""
    refresh_token: str = ""


AuthListener = Callable[[Optional[AuthUser]], None]


class AuthSession:
    """Current signed-in identity plus change notifications."""

    def __init__(self) -> None:
        self._user: Optional[AuthUser] = None
        self._listeners: List[AuthListener] = []
        self._ready_event: Optional[asyncio.Event] = None
        self._ready = False

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def ready(self) -> bool:
        return self._ready

    def current_user_id(self) -> Optional[str]:
        return self._user.uid if self._user is not None else None

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)
        if self._ready:
            self._notify_one(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_user(self, user: Optional[AuthUser]) -> None:
        self._user = user
        logger.info("Auth state changed: %s", user.uid if user else "signed out")
        self.mark_ready()
        for listener in list(self._listeners):
            self._notify_one(listener)

    def mark_ready(self) -> None:
        self._ready = True
        if self._ready_event is not None:
            self._ready_event.set()

    def _notify_one(self, listener: AuthListener) -> None:
        try:
            listener(self._user)
        except Exception:
            logger.exception("Auth listener failed")

    async def wait_until_ready(self, timeout: float) -> bool:
        """False when the provider has not reported within ``timeout`` seconds."""
        if self._ready:
            return True
        if self._ready_event is None:
            self._ready_event = asyncio.Event()
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Auth session not ready after %.1fs; continuing signed out", timeout)
            return False
        return True
