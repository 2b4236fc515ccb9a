from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import ChatStatus


@dataclass(frozen=True)
class Chat:
    """One department-routed conversation (row shape).

    `recipient_department` is always stored canonicalized.
    """

    chat_id: int
    initiator_id: int
    recipient_department: str
    status: ChatStatus
    created_at: datetime
    last_message_at: datetime
    accepted_by: Optional[int] = None
    accepted_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    closed_at: Optional[datetime] = None


@dataclass(frozen=True)
class Attachment:
    attachment_id: int
    message_id: int
    file_name: str
    file_url: str
    file_key: str
    file_size: int
    mime_type: str


@dataclass(frozen=True)
class Message:
    """One entry in a chat's timeline; only `is_read`/`read_at` ever change."""

    message_id: int
    chat_id: int
    sender_id: int
    content: str
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None
    sender_name: Optional[str] = None
    attachments: tuple[Attachment, ...] = ()


@dataclass(frozen=True)
class ChatDetail:
    """A chat with its whole timeline, ordered by (created_at, message_id)."""

    chat: Chat
    messages: tuple[Message, ...]
    initiator_name: Optional[str] = None
    acceptor_name: Optional[str] = None


@dataclass(frozen=True)
class ChatSummary:
    """List row: a chat with the preview of its latest message."""

    chat: Chat
    last_message: Optional[Message] = None
    initiator_name: Optional[str] = None
    acceptor_name: Optional[str] = None


@dataclass(frozen=True)
class AppendResult:
    """Outcome of appending a message; `auto_accepted` is True when this append claimed the chat."""

    message_id: int
    auto_accepted: bool = False
