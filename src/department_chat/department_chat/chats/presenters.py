from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from .model import Attachment, Chat, ChatDetail, ChatSummary, Message


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def attachment_to_dict(a: Attachment) -> dict[str, Any]:
    return {
        "id": a.attachment_id,
        "fileName": a.file_name,
        "fileUrl": a.file_url,
        "fileKey": a.file_key,
        "fileSize": a.file_size,
        "mimeType": a.mime_type,
    }


def message_to_dict(m: Message) -> dict[str, Any]:
    return {
        "id": m.message_id,
        "chatId": m.chat_id,
        "sender": {"id": m.sender_id, "name": m.sender_name},
        "content": m.content,
        "isRead": m.is_read,
        "readAt": _iso(m.read_at),
        "createdAt": _iso(m.created_at),
        "attachments": [attachment_to_dict(a) for a in m.attachments],
    }


def chat_to_dict(c: Chat, *, initiator_name: Optional[str] = None, acceptor_name: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": c.chat_id,
        "initiator": {"id": c.initiator_id, "name": initiator_name},
        "recipientDepartment": c.recipient_department,
        "status": c.status.value,
        "acceptedBy": c.accepted_by,
        "acceptor": {"id": c.accepted_by, "name": acceptor_name} if c.accepted_by is not None else None,
        "acceptedAt": _iso(c.accepted_at),
        "closedBy": c.closed_by,
        "closedAt": _iso(c.closed_at),
        "createdAt": _iso(c.created_at),
        "lastMessageAt": _iso(c.last_message_at),
    }


def chat_detail_to_dict(d: ChatDetail) -> dict[str, Any]:
    out = chat_to_dict(d.chat, initiator_name=d.initiator_name, acceptor_name=d.acceptor_name)
    out["messages"] = [message_to_dict(m) for m in d.messages]
    return out


def chat_summary_to_dict(s: ChatSummary) -> dict[str, Any]:
    out = chat_to_dict(s.chat, initiator_name=s.initiator_name, acceptor_name=s.acceptor_name)
    out["messages"] = [message_to_dict(s.last_message)] if s.last_message else []
    return out
