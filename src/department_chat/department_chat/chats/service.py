from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..attachments.model import UploadedFile
from ..attachments.service import AttachmentService
from ..common.departments import canonical_department, require_known_department
from ..common.validators import require_content_or_attachments
from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.enums import ChatStatus
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
)
from ..directory.adapter import DirectoryAdapter
from ..directory.model import Member
from . import policy
from .model import Chat, ChatDetail, ChatSummary, Message
from .repository import ChatRepository

logger = logging.getLogger(__name__)

_STATE_MESSAGES = {
    ChatStatus.PENDING: "Chat ainda não foi aceito",
    ChatStatus.ACCEPTED: "Chat já foi aceito por outro usuário",
    ChatStatus.CLOSED: "Chat já está encerrado",
}


class ChatService:
    """Routing and state engine for department chats.

    Transitions go through the repository's status-guarded updates; a reader
    deciding from a stale status only ever loses the update, it never
    overwrites.
    """

    def __init__(self, chats: ChatRepository, directory: DirectoryAdapter, attachments: AttachmentService):
        self._chats = chats
        self._directory = directory
        self._attachments = attachments

    # -------- helpers --------
    def _member(self, user_id: Optional[int]) -> Member:
        if user_id is None:
            raise AuthenticationError("Usuário não autenticado")
        member = self._directory.get_member(int(user_id))
        if not member or not member.is_active:
            raise AuthenticationError("Usuário não autenticado")
        return member

    def department_of(self, user_id: Optional[int]) -> str:
        """Canonical department of the caller ("" when the directory has none)."""
        return canonical_department(self._member(user_id).department)

    def _load(self, chat_id: int) -> Chat:
        chat = self._chats.get_chat(int(chat_id))
        if not chat:
            raise NotFoundError("Chat não encontrado")
        return chat

    def _detail(self, chat_id: int) -> ChatDetail:
        detail = self._chats.get_chat_detail(int(chat_id))
        if not detail:
            raise NotFoundError("Chat não encontrado")
        return detail

    @staticmethod
    def _state_error(chat: Chat) -> InvalidStateError:
        return InvalidStateError(_STATE_MESSAGES[chat.status])

    def _lost_race(self, chat_id: int) -> None:
        current = self._chats.get_chat(int(chat_id))
        if not current:
            raise NotFoundError("Chat não encontrado")
        raise self._state_error(current)

    @staticmethod
    def _require_department_member(chat: Chat, member: Member) -> None:
        # Initiator identity takes precedence over a department match.
        if policy.is_initiator(chat, member.user_id):
            raise AuthorizationError("O solicitante não pode aceitar ou recusar o próprio chat")
        if not policy.department_matches(chat, member.department):
            raise AuthorizationError("Este chat não pertence ao seu setor")

    @staticmethod
    def _require_participant(chat: Chat, member: Member) -> None:
        if not policy.is_participant(chat, user_id=member.user_id, department=member.department):
            raise AuthorizationError("Você não tem permissão para acessar este chat")

    # -------- transitions --------
    def create_chat(
        self,
        *,
        initiator_id: int,
        recipient_department: str,
        initial_message: str,
        files: Sequence[UploadedFile] = (),
    ) -> ChatDetail:
        member = self._member(initiator_id)
        department = require_known_department(recipient_department)
        content = require_content_or_attachments(initial_message, files, "Mensagem inicial")

        attachments = self._attachments.upload_all(files, uploader_id=member.user_id)
        try:
            chat_id = self._chats.create_chat(
                initiator_id=member.user_id,
                recipient_department=department,
                content=content,
                attachments=attachments,
            )
        except Exception:
            self._attachments.discard([a.file_key for a in attachments])
            raise

        logger.info("Chat %s created by user %s for %s", chat_id, member.user_id, department)
        return self._detail(chat_id)

    def accept_chat(self, *, chat_id: int, user_id: int) -> ChatDetail:
        member = self._member(user_id)
        chat = self._load(chat_id)
        if chat.status != ChatStatus.PENDING:
            raise self._state_error(chat)
        self._require_department_member(chat, member)

        if not self._chats.accept_if_pending(chat_id=chat.chat_id, accepted_by=member.user_id):
            logger.info("User %s lost the accept race on chat %s", member.user_id, chat.chat_id)
            self._lost_race(chat.chat_id)

        logger.info("Chat %s accepted by user %s", chat.chat_id, member.user_id)
        return self._detail(chat.chat_id)

    def reject_chat(self, *, chat_id: int, user_id: int) -> None:
        member = self._member(user_id)
        chat = self._load(chat_id)
        self._require_department_member(chat, member)
        if chat.status != ChatStatus.PENDING:
            raise self._state_error(chat)

        keys = list(self._chats.list_attachment_keys(chat.chat_id))
        if not self._chats.delete_if_pending(chat.chat_id):
            logger.info("User %s lost the reject race on chat %s", member.user_id, chat.chat_id)
            self._lost_race(chat.chat_id)

        logger.info("Chat %s rejected by user %s", chat.chat_id, member.user_id)
        self._attachments.discard(keys)

    def delete_chat(self, *, chat_id: int, user_id: int) -> None:
        member = self._member(user_id)
        chat = self._load(chat_id)
        self._require_participant(chat, member)

        keys = list(self._chats.list_attachment_keys(chat.chat_id))
        if not self._chats.delete_chat(chat.chat_id):
            raise NotFoundError("Chat não encontrado")

        logger.info("Chat %s deleted by user %s", chat.chat_id, member.user_id)
        self._attachments.discard(keys)

    def send_message(
        self,
        *,
        chat_id: int,
        sender_id: int,
        content: str,
        files: Sequence[UploadedFile] = (),
    ) -> Message:
        member = self._member(sender_id)
        chat = self._load(chat_id)
        if chat.status == ChatStatus.CLOSED:
            raise self._state_error(chat)
        self._require_participant(chat, member)
        text = require_content_or_attachments(content, files, "Conteúdo")

        attachments = self._attachments.upload_all(files, uploader_id=member.user_id)
        keys = [a.file_key for a in attachments]

        auto_accept_by = None
        if chat.status == ChatStatus.PENDING and not policy.is_initiator(chat, member.user_id):
            auto_accept_by = member.user_id

        try:
            result = self._chats.append_message(
                chat_id=chat.chat_id,
                sender_id=member.user_id,
                content=text,
                attachments=attachments,
                auto_accept_by=auto_accept_by,
            )
        except Exception:
            self._attachments.discard(keys)
            raise

        if result is None:
            self._attachments.discard(keys)
            logger.info("Message from user %s to chat %s refused: chat changed", member.user_id, chat.chat_id)
            self._lost_race(chat.chat_id)

        if auto_accept_by is not None:
            if result.auto_accepted:
                logger.info("Chat %s auto-accepted by reply from user %s", chat.chat_id, member.user_id)
            else:
                logger.info("Auto-accept of chat %s by user %s lost; sent anyway", chat.chat_id, member.user_id)

        message = self._chats.get_message(result.message_id)
        if not message:
            raise NotFoundError("Mensagem não encontrada")
        return message

    def close_chat(self, *, chat_id: int, user_id: int) -> ChatDetail:
        member = self._member(user_id)
        chat = self._load(chat_id)
        if chat.status == ChatStatus.CLOSED:
            raise self._state_error(chat)
        self._require_participant(chat, member)
        if chat.status != ChatStatus.ACCEPTED:
            raise self._state_error(chat)

        if not self._chats.close_if_accepted(chat_id=chat.chat_id, closed_by=member.user_id):
            logger.info("User %s lost the close race on chat %s", member.user_id, chat.chat_id)
            self._lost_race(chat.chat_id)

        logger.info("Chat %s closed by user %s", chat.chat_id, member.user_id)
        return self._detail(chat.chat_id)

    def mark_messages_as_read(self, *, chat_id: int, user_id: int) -> int:
        member = self._member(user_id)
        chat = self._load(chat_id)
        self._require_participant(chat, member)
        return self._chats.mark_read(chat_id=chat.chat_id, reader_id=member.user_id)

    # -------- reads --------
    def get_chat_by_id(self, *, chat_id: int, user_id: int) -> ChatDetail:
        member = self._member(user_id)
        detail = self._detail(chat_id)
        self._require_participant(detail.chat, member)
        return detail

    def list_pending(self, *, department: Optional[str], limit: int = DEFAULT_LIST_LIMIT) -> Sequence[ChatSummary]:
        dept = canonical_department(department)
        if not dept:
            return []
        return self._chats.list_pending(department=dept, limit=limit)

    def list_active(self, *, user_id: int, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[ChatSummary]:
        member = self._member(user_id)
        return self._chats.list_active(
            user_id=member.user_id,
            department=canonical_department(member.department) or None,
            limit=limit,
        )

    def list_closed(self, *, user_id: int, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[ChatSummary]:
        member = self._member(user_id)
        return self._chats.list_closed(
            user_id=member.user_id,
            department=canonical_department(member.department) or None,
            limit=limit,
        )
