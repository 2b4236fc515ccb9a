"""Authorization predicates for chats.

Every department comparison goes through common.departments so the caller's
department is canonicalized exactly like the stored recipient department.
List and counter scopes live in the repository (mysql_chat_repository).
"""

from __future__ import annotations

from typing import Optional

from ..common.departments import same_department
from .model import Chat


def is_initiator(chat: Chat, user_id: int) -> bool:
    return chat.initiator_id == int(user_id)


def department_matches(chat: Chat, department: Optional[str]) -> bool:
    return same_department(department, chat.recipient_department)


def is_participant(chat: Chat, *, user_id: int, department: Optional[str]) -> bool:
    """Initiator, or a member of the recipient department.

    Initiator access is unconditional, so the department is only consulted
    for everyone else.
    """
    return is_initiator(chat, user_id) or department_matches(chat, department)
