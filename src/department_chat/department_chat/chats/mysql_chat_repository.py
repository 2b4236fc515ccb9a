from __future__ import annotations

from typing import Any, Optional, Sequence

from ..attachments.model import NewAttachment
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import ChatStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders
from .model import AppendResult, Attachment, Chat, ChatDetail, ChatSummary, Message
from .repository import ChatRepository

_CHAT_COLUMNS = """
    c.chat_id, c.initiator_id, c.recipient_department, c.status,
    c.accepted_by, c.accepted_at, c.closed_by, c.closed_at,
    c.created_at, c.last_message_at
"""

_SUMMARY_SELECT = f"""
    SELECT {_CHAT_COLUMNS},
           iu.full_name AS initiator_name, au.full_name AS acceptor_name,
           m.message_id AS last_message_id, m.sender_id AS last_sender_id,
           m.content AS last_content, m.is_read AS last_is_read,
           m.read_at AS last_read_at, m.created_at AS last_created_at,
           mu.full_name AS last_sender_name
    FROM chats c
    LEFT JOIN users iu ON iu.user_id = c.initiator_id
    LEFT JOIN users au ON au.user_id = c.accepted_by
    LEFT JOIN chat_messages m ON m.message_id = (
        SELECT m2.message_id FROM chat_messages m2
        WHERE m2.chat_id = c.chat_id
        ORDER BY m2.created_at DESC, m2.message_id DESC
        LIMIT 1
    )
    LEFT JOIN users mu ON mu.user_id = m.sender_id
"""


def active_scope_clause(*, user_id: int, department: Optional[str]) -> tuple[str, list[object]]:
    """Chats the user initiated that are still open, plus accepted chats of the user's department.

    Shared by list_active and count_unread so both see the same chats.
    """
    clauses = [f"(c.initiator_id=%s AND c.status IN ({placeholders(2)}))"]
    params: list[object] = [int(user_id), ChatStatus.PENDING.value, ChatStatus.ACCEPTED.value]
    if department:
        clauses.append("(c.recipient_department=%s AND c.status=%s)")
        params.extend([department, ChatStatus.ACCEPTED.value])
    return "(" + " OR ".join(clauses) + ")", params


def closed_scope_clause(*, user_id: int, department: Optional[str]) -> tuple[str, list[object]]:
    clauses = ["c.initiator_id=%s"]
    params: list[object] = [int(user_id)]
    if department:
        clauses.append("c.recipient_department=%s")
        params.append(department)
    return f"(c.status=%s AND ({' OR '.join(clauses)}))", [ChatStatus.CLOSED.value] + params


def _row_to_chat(r: dict[str, Any]) -> Chat:
    return Chat(
        chat_id=int(r["chat_id"]),
        initiator_id=int(r["initiator_id"]),
        recipient_department=r["recipient_department"],
        status=ChatStatus(r["status"]),
        created_at=r["created_at"],
        last_message_at=r["last_message_at"],
        accepted_by=r.get("accepted_by"),
        accepted_at=r.get("accepted_at"),
        closed_by=r.get("closed_by"),
        closed_at=r.get("closed_at"),
    )


def _row_to_attachment(r: dict[str, Any]) -> Attachment:
    return Attachment(
        attachment_id=int(r["attachment_id"]),
        message_id=int(r["message_id"]),
        file_name=r["file_name"],
        file_url=r["file_url"],
        file_key=r["file_key"],
        file_size=int(r["file_size"]),
        mime_type=r["mime_type"],
    )


def _row_to_message(r: dict[str, Any], attachments: Sequence[Attachment] = ()) -> Message:
    return Message(
        message_id=int(r["message_id"]),
        chat_id=int(r["chat_id"]),
        sender_id=int(r["sender_id"]),
        content=r["content"] or "",
        is_read=bool(r["is_read"]),
        created_at=r["created_at"],
        read_at=r.get("read_at"),
        sender_name=r.get("sender_name"),
        attachments=tuple(attachments),
    )


def _row_to_summary(r: dict[str, Any]) -> ChatSummary:
    chat = _row_to_chat(r)
    last = None
    if r.get("last_message_id") is not None:
        last = Message(
            message_id=int(r["last_message_id"]),
            chat_id=chat.chat_id,
            sender_id=int(r["last_sender_id"]),
            content=r.get("last_content") or "",
            is_read=bool(r.get("last_is_read")),
            created_at=r["last_created_at"],
            read_at=r.get("last_read_at"),
            sender_name=r.get("last_sender_name"),
        )
    return ChatSummary(
        chat=chat,
        last_message=last,
        initiator_name=r.get("initiator_name"),
        acceptor_name=r.get("acceptor_name"),
    )


class MySQLChatRepository(ChatRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Writes --------
    @staticmethod
    def _insert_message(cur, *, chat_id: int, sender_id: int, content: str, attachments: Sequence[NewAttachment]) -> int:
        cur.execute(
            """
            INSERT INTO chat_messages(chat_id, sender_id, content, is_read)
            VALUES(%s,%s,%s,0)
            """,
            (int(chat_id), int(sender_id), content),
        )
        message_id = int(cur.lastrowid)
        for att in attachments:
            cur.execute(
                """
                INSERT INTO chat_attachments(message_id, file_name, file_url, file_key, file_size, mime_type)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (message_id, att.file_name, att.file_url, att.file_key, int(att.file_size), att.mime_type),
            )
        return message_id

    def create_chat(
        self,
        *,
        initiator_id: int,
        recipient_department: str,
        content: str,
        attachments: Sequence[NewAttachment] = (),
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO chats(initiator_id, recipient_department, status, last_message_at)
                VALUES(%s,%s,%s,NOW(6))
                """,
                (int(initiator_id), recipient_department, ChatStatus.PENDING.value),
            )
            chat_id = int(cur.lastrowid)
            self._insert_message(
                cur,
                chat_id=chat_id,
                sender_id=int(initiator_id),
                content=content,
                attachments=attachments,
            )
            return chat_id

    @staticmethod
    def _accept_if_pending(cur, *, chat_id: int, accepted_by: int) -> bool:
        cur.execute(
            """
            UPDATE chats
            SET status=%s, accepted_by=%s, accepted_at=NOW(6)
            WHERE chat_id=%s AND status=%s
            """,
            (
                ChatStatus.ACCEPTED.value,
                int(accepted_by),
                int(chat_id),
                ChatStatus.PENDING.value,
            ),
        )
        return cur.rowcount > 0

    def accept_if_pending(self, *, chat_id: int, accepted_by: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            return self._accept_if_pending(cur, chat_id=chat_id, accepted_by=accepted_by)

    def close_if_accepted(self, *, chat_id: int, closed_by: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE chats
                SET status=%s, closed_by=%s, closed_at=NOW(6)
                WHERE chat_id=%s AND status=%s
                """,
                (
                    ChatStatus.CLOSED.value,
                    int(closed_by),
                    int(chat_id),
                    ChatStatus.ACCEPTED.value,
                ),
            )
            return cur.rowcount > 0

    def delete_if_pending(self, chat_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM chats WHERE chat_id=%s AND status=%s",
                (int(chat_id), ChatStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def delete_chat(self, chat_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM chats WHERE chat_id=%s", (int(chat_id),))
            return cur.rowcount > 0

    def append_message(
        self,
        *,
        chat_id: int,
        sender_id: int,
        content: str,
        attachments: Sequence[NewAttachment] = (),
        auto_accept_by: Optional[int] = None,
    ) -> Optional[AppendResult]:
        with db_cursor(self._conn_factory) as (_, cur):
            auto_accepted = False
            if auto_accept_by is not None:
                auto_accepted = self._accept_if_pending(cur, chat_id=chat_id, accepted_by=auto_accept_by)
            # Guard + row lock: a close cannot commit between this and the inserts.
            cur.execute(
                """
                UPDATE chats
                SET last_message_at=NOW(6)
                WHERE chat_id=%s AND status<>%s
                """,
                (int(chat_id), ChatStatus.CLOSED.value),
            )
            if cur.rowcount <= 0:
                return None
            message_id = self._insert_message(
                cur,
                chat_id=int(chat_id),
                sender_id=int(sender_id),
                content=content,
                attachments=attachments,
            )
            return AppendResult(message_id=message_id, auto_accepted=auto_accepted)

    def mark_read(self, *, chat_id: int, reader_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE chat_messages
                SET is_read=1, read_at=NOW(6)
                WHERE chat_id=%s AND sender_id<>%s AND is_read=0
                """,
                (int(chat_id), int(reader_id)),
            )
            return int(cur.rowcount or 0)

    # -------- Reads --------
    def get_chat(self, chat_id: int) -> Optional[Chat]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_CHAT_COLUMNS} FROM chats c WHERE c.chat_id=%s", (int(chat_id),))
            r = fetchone(cur)
            return _row_to_chat(r) if r else None

    @staticmethod
    def _attachments_by_message(cur, message_ids: Sequence[int]) -> dict[int, list[Attachment]]:
        out: dict[int, list[Attachment]] = {}
        if not message_ids:
            return out
        cur.execute(
            f"""
            SELECT attachment_id, message_id, file_name, file_url, file_key, file_size, mime_type
            FROM chat_attachments
            WHERE message_id IN ({placeholders(len(message_ids))})
            ORDER BY attachment_id
            """,
            tuple(int(m) for m in message_ids),
        )
        for r in fetchall(cur):
            out.setdefault(int(r["message_id"]), []).append(_row_to_attachment(r))
        return out

    def get_chat_detail(self, chat_id: int) -> Optional[ChatDetail]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_CHAT_COLUMNS},
                       iu.full_name AS initiator_name, au.full_name AS acceptor_name
                FROM chats c
                LEFT JOIN users iu ON iu.user_id = c.initiator_id
                LEFT JOIN users au ON au.user_id = c.accepted_by
                WHERE c.chat_id=%s
                """,
                (int(chat_id),),
            )
            head = fetchone(cur)
            if not head:
                return None

            cur.execute(
                """
                SELECT m.message_id, m.chat_id, m.sender_id, m.content,
                       m.is_read, m.read_at, m.created_at, u.full_name AS sender_name
                FROM chat_messages m
                LEFT JOIN users u ON u.user_id = m.sender_id
                WHERE m.chat_id=%s
                ORDER BY m.created_at ASC, m.message_id ASC
                """,
                (int(chat_id),),
            )
            rows = fetchall(cur)
            attachments = self._attachments_by_message(cur, [int(r["message_id"]) for r in rows])

            return ChatDetail(
                chat=_row_to_chat(head),
                messages=tuple(_row_to_message(r, attachments.get(int(r["message_id"]), ())) for r in rows),
                initiator_name=head.get("initiator_name"),
                acceptor_name=head.get("acceptor_name"),
            )

    def get_message(self, message_id: int) -> Optional[Message]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT m.message_id, m.chat_id, m.sender_id, m.content,
                       m.is_read, m.read_at, m.created_at, u.full_name AS sender_name
                FROM chat_messages m
                LEFT JOIN users u ON u.user_id = m.sender_id
                WHERE m.message_id=%s
                """,
                (int(message_id),),
            )
            r = fetchone(cur)
            if not r:
                return None
            attachments = self._attachments_by_message(cur, [int(r["message_id"])])
            return _row_to_message(r, attachments.get(int(r["message_id"]), ()))

    def list_attachment_keys(self, chat_id: int) -> Sequence[str]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT a.file_key
                FROM chat_attachments a
                JOIN chat_messages m ON m.message_id = a.message_id
                WHERE m.chat_id=%s
                """,
                (int(chat_id),),
            )
            return [r["file_key"] for r in fetchall(cur)]

    def _list(self, where: str, params: list[object], *, order_by: str, limit: int) -> Sequence[ChatSummary]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {_SUMMARY_SELECT}
                WHERE {where}
                ORDER BY {order_by}
                LIMIT %s
                """,
                tuple(params + [int(limit)]),
            )
            return [_row_to_summary(r) for r in fetchall(cur)]

    def list_pending(self, *, department: str, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[ChatSummary]:
        return self._list(
            "c.recipient_department=%s AND c.status=%s",
            [department, ChatStatus.PENDING.value],
            order_by="c.last_message_at DESC, c.chat_id DESC",
            limit=limit,
        )

    def list_active(
        self, *, user_id: int, department: Optional[str], limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[ChatSummary]:
        where, params = active_scope_clause(user_id=user_id, department=department)
        return self._list(where, params, order_by="c.last_message_at DESC, c.chat_id DESC", limit=limit)

    def list_closed(
        self, *, user_id: int, department: Optional[str], limit: int = DEFAULT_LIST_LIMIT
    ) -> Sequence[ChatSummary]:
        where, params = closed_scope_clause(user_id=user_id, department=department)
        return self._list(where, params, order_by="c.closed_at DESC, c.chat_id DESC", limit=limit)

    # -------- Counters --------
    def count_pending(self, *, department: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM chats c WHERE c.recipient_department=%s AND c.status=%s",
                (department, ChatStatus.PENDING.value),
            )
            r = fetchone(cur)
            return int(r["n"]) if r else 0

    def count_unread(self, *, user_id: int, department: Optional[str]) -> int:
        scope, params = active_scope_clause(user_id=user_id, department=department)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT COUNT(*) AS n
                FROM chat_messages m
                JOIN chats c ON c.chat_id = m.chat_id
                WHERE {scope} AND c.status=%s AND m.sender_id<>%s AND m.is_read=0
                """,
                tuple(params + [ChatStatus.ACCEPTED.value, int(user_id)]),
            )
            r = fetchone(cur)
            return int(r["n"]) if r else 0
