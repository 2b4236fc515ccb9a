from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..attachments.model import NewAttachment
from .model import AppendResult, Chat, ChatDetail, ChatSummary, Message


class ChatRepository(Protocol):
    """Persistence boundary for chats, messages and attachments.

    No authorization lives here. Status transitions are conditional updates
    that report whether they changed the row; callers never read-then-write.
    """

    def create_chat(
        self,
        *,
        initiator_id: int,
        recipient_department: str,
        content: str,
        attachments: Sequence[NewAttachment] = (),
    ) -> int:
        """Insert a PENDING chat with its first message and attachments as one unit."""

        raise NotImplementedError

    def get_chat(self, chat_id: int) -> Optional[Chat]:
        raise NotImplementedError

    def get_chat_detail(self, chat_id: int) -> Optional[ChatDetail]:
        raise NotImplementedError

    def accept_if_pending(self, *, chat_id: int, accepted_by: int) -> bool:
        """PENDING -> ACCEPTED; False when the chat is absent or no longer PENDING."""

        raise NotImplementedError

    def close_if_accepted(self, *, chat_id: int, closed_by: int) -> bool:
        raise NotImplementedError

    def delete_if_pending(self, chat_id: int) -> bool:
        raise NotImplementedError

    def delete_chat(self, chat_id: int) -> bool:
        raise NotImplementedError

    def list_attachment_keys(self, chat_id: int) -> Sequence[str]:
        raise NotImplementedError

    def append_message(
        self,
        *,
        chat_id: int,
        sender_id: int,
        content: str,
        attachments: Sequence[NewAttachment] = (),
        auto_accept_by: Optional[int] = None,
    ) -> Optional[AppendResult]:
        """Insert a message (+ attachments) and bump last_message_at as one unit.

        With `auto_accept_by`, a PENDING chat is moved to ACCEPTED by that user
        in the same unit (conditional, like accept_if_pending).
        Returns None, writing nothing, when the chat is absent or CLOSED.
        """

        raise NotImplementedError

    def get_message(self, message_id: int) -> Optional[Message]:
        raise NotImplementedError

    def mark_read(self, *, chat_id: int, reader_id: int) -> int:
        raise NotImplementedError

    def list_pending(self, *, department: str, limit: int = 200) -> Sequence[ChatSummary]:
        raise NotImplementedError

    def list_active(self, *, user_id: int, department: Optional[str], limit: int = 200) -> Sequence[ChatSummary]:
        raise NotImplementedError

    def list_closed(self, *, user_id: int, department: Optional[str], limit: int = 200) -> Sequence[ChatSummary]:
        raise NotImplementedError

    def count_pending(self, *, department: str) -> int:
        raise NotImplementedError

    def count_unread(self, *, user_id: int, department: Optional[str]) -> int:
        """Unread messages not sent by the user, over ACCEPTED chats of the active-list scope."""

        raise NotImplementedError
