from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..models import MOOD_ENTRIES, check_mood_fields
from .ownership import OwnershipMixin
from .repository import Repository


class MoodEntriesMixin(OwnershipMixin):
    _moods: Repository

    async def add_mood_entry(self, entry: Dict[str, Any], user_id: Optional[str] = None) -> str:
        owner = self._require_owner(MOOD_ENTRIES, user_id)
        check_mood_fields(entry)
        return await self._moods.create(owner, entry)

    async def get_mood_entries(
        self,
        user_id: Optional[str] = None,
        limit: Optional[int] = MOOD_ENTRIES.default_limit,
    ) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return []
        return await self._moods.list(owner, limit=limit)
