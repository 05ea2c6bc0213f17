from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..storage.errors import IdentityRequiredError
from .repository import Repository

logger = logging.getLogger("inside_mentor.storage")


class UsersMixin:
    _users: Repository

    async def create_user(self, user: Dict[str, Any]) -> str:
        """Store a profile under its own identity key (registration)."""
        user_id = str(user.get("id") or "").strip()
        if not user_id:
            raise IdentityRequiredError("User records need an id")
        await self._users.put(user_id, user)
        logger.info("Stored user profile %s (%s)", user_id, self.storage_mode())
        return user_id

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        return await self._users.get(user_id)

    async def update_user(self, user_id: str, updates: Dict[str, Any]) -> None:
        if not user_id:
            raise IdentityRequiredError("Cannot update a profile without a user id")
        profile = {key: value for key, value in updates.items() if key != "id"}
        await self._users.update(user_id, profile)

    def storage_mode(self) -> str:
        return "remote" if self._users.remote_available() else "mirror"
