from __future__ import annotations

from typing import Optional

from ..common.departments import canonical_department
from ..core.exceptions import AuthenticationError
from ..directory.adapter import DirectoryAdapter
from .repository import ChatRepository


class ChatCounterService:
    """Read-only counters for polling clients."""

    def __init__(self, chats: ChatRepository, directory: DirectoryAdapter):
        self._chats = chats
        self._directory = directory

    def pending_count(self, department: Optional[str]) -> int:
        dept = canonical_department(department)
        if not dept:
            return 0
        return int(self._chats.count_pending(department=dept))

    def unread_count(self, user_id: int) -> int:
        # Same participation scope as ChatRepository.list_active.
        member = self._directory.get_member(int(user_id))
        if not member or not member.is_active:
            raise AuthenticationError("Usuário não autenticado")
        return int(
            self._chats.count_unread(
                user_id=member.user_id,
                department=canonical_department(member.department) or None,
            )
        )
