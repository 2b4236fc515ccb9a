from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .attachments.service import AttachmentService
from .attachments.store import AttachmentStore, build_attachment_store
from .chats.counters import ChatCounterService
from .chats.mysql_chat_repository import MySQLChatRepository
from .chats.repository import ChatRepository
from .chats.service import ChatService
from .database.bootstrap import as_db_config
from .database.connection import DatabaseConnection
from .directory.adapter import DirectoryAdapter
from .directory.mysql_directory import MySQLDirectory


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    chats_repo: ChatRepository
    directory: DirectoryAdapter
    attachment_store: AttachmentStore

    attachment_service: AttachmentService
    chat_service: ChatService
    counter_service: ChatCounterService


def build_container(*, db_config: dict, settings: Any = None) -> Container:
    conn = DatabaseConnection.get_instance(as_db_config(db_config))

    chats_repo = MySQLChatRepository(conn)
    directory = MySQLDirectory(conn)
    attachment_store = build_attachment_store(settings)

    attachment_service = AttachmentService(attachment_store)
    chat_service = ChatService(chats_repo, directory, attachment_service)
    counter_service = ChatCounterService(chats_repo, directory)

    return Container(
        conn=conn,
        chats_repo=chats_repo,
        directory=directory,
        attachment_store=attachment_store,
        attachment_service=attachment_service,
        chat_service=chat_service,
        counter_service=counter_service,
    )
