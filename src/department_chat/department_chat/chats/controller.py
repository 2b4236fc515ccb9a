from __future__ import annotations

import logging
from functools import wraps

from flask import Flask, abort, jsonify, request, send_from_directory, session
from werkzeug.exceptions import RequestEntityTooLarge

from ..attachments.model import UploadedFile
from ..attachments.store import LocalAttachmentStore
from ..core.constants import DEFAULT_MIME_TYPE
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainError,
    InvalidStateError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)
from ..container import Container
from .presenters import chat_detail_to_dict, chat_summary_to_dict, message_to_dict

logger = logging.getLogger(__name__)

# Most specific first.
_STATUS_BY_ERROR = (
    (PayloadTooLargeError, 413),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (InvalidStateError, 409),
)


def status_for(exc: DomainError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 400


def _fail(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def _ok(data=None, message: str | None = None):
    body: dict = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body)


def _uploaded_files(field: str = "attachments") -> list[UploadedFile]:
    out: list[UploadedFile] = []
    for f in request.files.getlist(field):
        if not f or not f.filename:
            continue
        out.append(UploadedFile(file_name=f.filename, mime_type=f.mimetype or DEFAULT_MIME_TYPE, data=f.read()))
    return out


def _form_value(name: str) -> str:
    if request.form:
        return request.form.get(name, "")
    payload = request.get_json(silent=True) or {}
    value = payload.get(name)
    return "" if value is None else str(value)


def register(app: Flask, container: Container) -> None:
    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return _fail("Usuário não autenticado", 401)
            return view(*args, **kwargs)

        return wrapper

    def json_errors(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except DomainError as e:
                return _fail(str(e), status_for(e))
            except RequestEntityTooLarge:
                return _fail("Arquivo muito grande", 413)
            except Exception:
                logger.exception("Unhandled error in %s", request.path)
                return _fail("Erro interno do servidor", 500)

        return wrapper

    def _current_user_id() -> int:
        return int(session["user_id"])

    @app.errorhandler(RequestEntityTooLarge)
    def payload_too_large(_e):
        return _fail("Arquivo muito grande", 413)

    @app.route("/api/chats", methods=["POST"], endpoint="create_chat")
    @login_required
    @json_errors
    def create_chat():
        detail = container.chat_service.create_chat(
            initiator_id=_current_user_id(),
            recipient_department=_form_value("recipientDepartment"),
            initial_message=_form_value("initialMessage"),
            files=_uploaded_files(),
        )
        return _ok(chat_detail_to_dict(detail), "Chat criado com sucesso")

    @app.route("/api/chats/<int:chat_id>/accept", methods=["POST"], endpoint="accept_chat")
    @login_required
    @json_errors
    def accept_chat(chat_id: int):
        detail = container.chat_service.accept_chat(chat_id=chat_id, user_id=_current_user_id())
        return _ok(chat_detail_to_dict(detail), "Chat aceito com sucesso")

    @app.route("/api/chats/<int:chat_id>/reject", methods=["DELETE"], endpoint="reject_chat")
    @login_required
    @json_errors
    def reject_chat(chat_id: int):
        container.chat_service.reject_chat(chat_id=chat_id, user_id=_current_user_id())
        return _ok(message="Chat rejeitado")

    @app.route("/api/chats/<int:chat_id>", methods=["DELETE"], endpoint="delete_chat")
    @login_required
    @json_errors
    def delete_chat(chat_id: int):
        container.chat_service.delete_chat(chat_id=chat_id, user_id=_current_user_id())
        return _ok(message="Conversa deletada com sucesso")

    @app.route("/api/chats/messages", methods=["POST"], endpoint="send_message")
    @login_required
    @json_errors
    def send_message():
        raw_chat_id = _form_value("chatId").strip()
        if not raw_chat_id.isdigit():
            raise ValidationError("ID do chat é obrigatório")
        message = container.chat_service.send_message(
            chat_id=int(raw_chat_id),
            sender_id=_current_user_id(),
            content=_form_value("content"),
            files=_uploaded_files(),
        )
        return _ok(message_to_dict(message), "Mensagem enviada")

    @app.route("/api/chats/pending", methods=["GET"], endpoint="pending_chats")
    @login_required
    @json_errors
    def pending_chats():
        department = container.chat_service.department_of(_current_user_id())
        chats = container.chat_service.list_pending(department=department)
        return _ok([chat_summary_to_dict(c) for c in chats])

    @app.route("/api/chats/active", methods=["GET"], endpoint="active_chats")
    @login_required
    @json_errors
    def active_chats():
        chats = container.chat_service.list_active(user_id=_current_user_id())
        return _ok([chat_summary_to_dict(c) for c in chats])

    @app.route("/api/chats/closed", methods=["GET"], endpoint="closed_chats")
    @login_required
    @json_errors
    def closed_chats():
        chats = container.chat_service.list_closed(user_id=_current_user_id())
        return _ok([chat_summary_to_dict(c) for c in chats])

    @app.route("/api/chats/<int:chat_id>", methods=["GET"], endpoint="get_chat")
    @login_required
    @json_errors
    def get_chat(chat_id: int):
        detail = container.chat_service.get_chat_by_id(chat_id=chat_id, user_id=_current_user_id())
        return _ok(chat_detail_to_dict(detail))

    @app.route("/api/chats/<int:chat_id>/read", methods=["PATCH"], endpoint="mark_chat_read")
    @login_required
    @json_errors
    def mark_chat_read(chat_id: int):
        updated = container.chat_service.mark_messages_as_read(chat_id=chat_id, user_id=_current_user_id())
        return _ok({"updated": updated}, "Mensagens marcadas como lidas")

    @app.route("/api/chats/<int:chat_id>/close", methods=["PATCH"], endpoint="close_chat")
    @login_required
    @json_errors
    def close_chat(chat_id: int):
        detail = container.chat_service.close_chat(chat_id=chat_id, user_id=_current_user_id())
        return _ok(chat_detail_to_dict(detail), "Chat encerrado")

    @app.route("/api/chats/pending/count", methods=["GET"], endpoint="pending_count")
    @login_required
    @json_errors
    def pending_count():
        department = container.chat_service.department_of(_current_user_id())
        return _ok({"count": container.counter_service.pending_count(department)})

    @app.route("/api/chats/unread/count", methods=["GET"], endpoint="unread_count")
    @login_required
    @json_errors
    def unread_count():
        return _ok({"count": container.counter_service.unread_count(_current_user_id())})

    @app.route("/uploads/<path:filename>", methods=["GET"], endpoint="uploaded_file")
    def uploaded_file(filename: str):
        store = container.attachment_store
        if not isinstance(store, LocalAttachmentStore):
            abort(404)
        return send_from_directory(store.base_dir, filename)
