from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Papel do usuário no diretório."""

    ADMIN = "admin"
    STAFF = "staff"


class ChatStatus(str, Enum):
    """Estado de uma conversa roteada para um setor.

    PENDING -> ACCEPTED -> CLOSED; CLOSED is terminal.
    """

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CLOSED = "CLOSED"

