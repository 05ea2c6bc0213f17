from __future__ import annotations

import logging
from typing import Optional

from ..models import (
    CHAT_MESSAGES,
    CHAT_SESSIONS,
    JOURNAL_ENTRIES,
    MOOD_ENTRIES,
    PROGRESS_REPORTS,
    TASKS,
    USER_ANALYTICS,
    USERS,
    WEEKLY_REPORTS,
)
from ..storage.base import DocumentStore
from ..storage.errors import DocumentStoreError, StoreErrorKind
from ..storage.mirror import MirrorStore
from .chat import ChatMixin
from .journals import JournalEntriesMixin
from .moods import MoodEntriesMixin
from .ownership import IdentityProvider
from .reports import ReportsMixin
from .repository import Repository
from .tasks import TasksMixin
from .users import UsersMixin

logger = logging.getLogger("inside_mentor.storage")

_CHAT_MIRROR_ERRORS = frozenset({StoreErrorKind.PERMISSION_DENIED, StoreErrorKind.UNAVAILABLE})


class PersistenceGateway(
    UsersMixin,
    TasksMixin,
    MoodEntriesMixin,
    JournalEntriesMixin,
    ChatMixin,
    ReportsMixin,
):
    """CRUD for every entity kind, served remotely or from the local mirror."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        *,
        session: Optional[IdentityProvider] = None,
        mirror: Optional[MirrorStore] = None,
    ) -> None:
        self.store = store
        self.session = session
        self.mirror = mirror if mirror is not None else MirrorStore()

        self._users = Repository(USERS, store, self.mirror)
        self._tasks = Repository(TASKS, store, self.mirror)
        self._moods = Repository(MOOD_ENTRIES, store, self.mirror)
        self._journals = Repository(JOURNAL_ENTRIES, store, self.mirror)
        self._messages = Repository(CHAT_MESSAGES, store, self.mirror, mirror_on_create=_CHAT_MIRROR_ERRORS)
        self._sessions = Repository(CHAT_SESSIONS, store, self.mirror)
        self._progress_reports = Repository(PROGRESS_REPORTS, store, self.mirror)
        self._weekly_reports = Repository(WEEKLY_REPORTS, store, self.mirror)
        self._analytics = Repository(USER_ANALYTICS, store, self.mirror)

    def _repositories(self) -> tuple[Repository, ...]:
        return (
            self._users,
            self._tasks,
            self._moods,
            self._journals,
            self._messages,
            self._sessions,
            self._progress_reports,
            self._weekly_reports,
            self._analytics,
        )

    async def init(self) -> None:
        if self.store is None or not self.store.configured:
            logger.warning("Document store not configured; using in-process mirror storage")
            return
        try:
            await self.store.init()
        except DocumentStoreError as exc:
            logger.error("Document store %s failed to initialize (%s); using mirror storage", self.store.backend_name, exc)
            for repository in self._repositories():
                repository.store = None

    async def close(self) -> None:
        if self.store is not None:
            await self.store.close()

    def reset_mirror(self) -> None:
        self.mirror.reset()
