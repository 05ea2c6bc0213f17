from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models import JOURNAL_ENTRIES
from .ownership import OwnershipMixin
from .repository import Repository


class JournalEntriesMixin(OwnershipMixin):
    _journals: Repository

    async def add_journal_entry(self, entry: Dict[str, Any], user_id: Optional[str] = None) -> str:
        owner = self._require_owner(JOURNAL_ENTRIES, user_id)
        return await self._journals.create(owner, entry)

    async def get_journal_entries(
        self,
        user_id: Optional[str] = None,
        limit: Optional[int] = JOURNAL_ENTRIES.default_limit,
    ) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return []
        return await self._journals.list(owner, limit=limit)

    async def update_journal_entry(self, entry_id: str, updates: Dict[str, Any]) -> None:
        await self._journals.update(entry_id, updates)

    async def attach_journal_feedback(self, entry_id: str, feedback: str) -> None:
        await self._journals.update(entry_id, {"aiFeedback": feedback})

    async def delete_journal_entry(self, entry_id: str) -> None:
        await self._journals.delete(entry_id)
