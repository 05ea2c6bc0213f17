from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..models import ANONYMOUS_OWNER, CHAT_SESSIONS, check_chat_message_fields
from ..storage.base import FieldFilter
from ..storage.utils import utcnow
from .ownership import OwnershipMixin
from .repository import Repository

logger = logging.getLogger("inside_mentor.storage")


class ChatMixin(OwnershipMixin):
    _messages: Repository
    _sessions: Repository

    async def add_chat_message(self, message: Dict[str, Any], user_id: Optional[str] = None) -> str:
        check_chat_message_fields(message)
        owner = self._resolve_owner(user_id)
        if not owner:
            # Chat keeps working signed-out: the message only lives locally.
            logger.warning("Storing chat message locally: no signed-in user")
            payload = {**message, "userId": ANONYMOUS_OWNER}
            payload.setdefault("timestamp", utcnow())
            return self._messages.create_local(ANONYMOUS_OWNER, payload)
        return await self._messages.create(owner, message)

    async def get_chat_messages(
        self,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id) or ANONYMOUS_OWNER
        filters = (FieldFilter("sessionId", "==", session_id),) if session_id else ()
        return await self._messages.list(owner, filters=filters)

    async def delete_chat_message(self, message_id: str) -> None:
        await self._messages.delete(message_id)

    async def clear_chat_messages(self, user_id: Optional[str] = None) -> int:
        owner = self._resolve_owner(user_id) or ANONYMOUS_OWNER
        removed = await self._messages.clear(owner)
        logger.info("Cleared %s chat messages for %s", removed, owner)
        return removed

    async def add_chat_session(self, session: Dict[str, Any], user_id: Optional[str] = None) -> str:
        owner = self._require_owner(CHAT_SESSIONS, user_id)
        now = utcnow()
        payload = {
            "title": "New conversation",
            "createdAt": now,
            "lastMessageAt": now,
            "messageCount": 0,
            "isActive": True,
            **session,
        }
        return await self._sessions.create(owner, payload)

    async def get_chat_sessions(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        owner = self._resolve_owner(user_id)
        if not owner:
            return []
        return await self._sessions.list(owner)

    async def update_chat_session(self, session_id: str, updates: Dict[str, Any]) -> None:
        await self._sessions.update(session_id, updates)

    async def delete_chat_session(self, session_id: str) -> None:
        await self._sessions.delete(session_id)

    async def switch_active_session(self, session_id: str, user_id: Optional[str] = None) -> None:
        """Flag ``session_id`` active, then clear the flag on the owner's other sessions.

        The two steps are separate writes; a concurrent switch can leave more
        than one session flagged active.
        """
        await self.update_chat_session(session_id, {"isActive": True})
        for session in await self.get_chat_sessions(user_id):
            if session["id"] != session_id and session.get("isActive"):
                await self.update_chat_session(session["id"], {"isActive": False})
