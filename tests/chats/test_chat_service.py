from __future__ import annotations

import pytest

from src.department_chat.department_chat.attachments.model import UploadedFile
from src.department_chat.department_chat.core.enums import ChatStatus
from src.department_chat.department_chat.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InvalidDepartmentError,
    InvalidStateError,
    NotFoundError,
    TooManyFilesError,
    ValidationError,
)

from tests.fakes import ANA, BRUNO, CARLA, DIEGO, EVA, FABIO


def _pdf(name: str = "contrato.pdf") -> UploadedFile:
    return UploadedFile(file_name=name, mime_type="application/pdf", data=b"%PDF-1.4 test")


def _open(service, initiator=ANA, department="Jurídico", text="Preciso de ajuda", files=()):
    return service.create_chat(
        initiator_id=initiator,
        recipient_department=department,
        initial_message=text,
        files=files,
    )


# -------- create --------
def test_create_chat_starts_pending_with_first_message(service):
    detail = _open(service)

    assert detail.chat.status == ChatStatus.PENDING
    assert detail.chat.recipient_department == "JURIDICO"
    assert detail.chat.initiator_id == ANA
    assert detail.initiator_name == "Ana Souza"
    assert len(detail.messages) == 1
    assert detail.messages[0].content == "Preciso de ajuda"
    assert detail.chat.last_message_at == detail.messages[0].created_at
    assert detail.chat.accepted_by is None


def test_create_chat_rejects_unknown_department(service, repo):
    with pytest.raises(InvalidDepartmentError):
        _open(service, department="Marketing")
    assert repo.count_pending(department="MARKETING") == 0


@pytest.mark.parametrize("department", ["", "   ", None])
def test_create_chat_requires_department(service, department):
    with pytest.raises(InvalidDepartmentError):
        _open(service, department=department)


def test_create_chat_requires_text_unless_files(service):
    with pytest.raises(ValidationError):
        _open(service, text="  ")

    detail = _open(service, text="", files=[_pdf()])
    assert detail.messages[0].content == ""
    assert len(detail.messages[0].attachments) == 1


def test_create_chat_needs_known_active_user(service):
    with pytest.raises(AuthenticationError):
        _open(service, initiator=999)
    with pytest.raises(AuthenticationError):
        _open(service, initiator=FABIO)


def test_create_chat_stores_attachments_with_message(service, store):
    detail = _open(service, files=[_pdf("a.pdf"), _pdf("b.pdf")])

    atts = detail.messages[0].attachments
    assert [a.file_name for a in atts] == ["a.pdf", "b.pdf"]
    assert all(a.file_key in store.blobs for a in atts)
    assert atts[0].mime_type == "application/pdf"


def test_create_chat_too_many_files_never_touches_store(service, store):
    with pytest.raises(TooManyFilesError):
        _open(service, files=[_pdf(f"{i}.pdf") for i in range(6)])
    assert store.blobs == {}


def test_create_chat_failure_discards_uploaded_blobs(service, repo, store, monkeypatch):
    def boom(**_kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(repo, "create_chat", boom)
    with pytest.raises(RuntimeError):
        _open(service, files=[_pdf()])
    assert store.blobs == {}
    assert len(store.deleted) == 1


# -------- accept --------
def test_accept_by_department_member(service):
    chat_id = _open(service).chat.chat_id

    detail = service.accept_chat(chat_id=chat_id, user_id=BRUNO)

    assert detail.chat.status == ChatStatus.ACCEPTED
    assert detail.chat.accepted_by == BRUNO
    assert detail.chat.accepted_at is not None
    assert detail.acceptor_name == "Bruno Lima"


def test_accept_by_other_department_is_forbidden(service, repo):
    chat_id = _open(service).chat.chat_id

    with pytest.raises(AuthorizationError):
        service.accept_chat(chat_id=chat_id, user_id=DIEGO)
    assert repo.get_chat(chat_id).status == ChatStatus.PENDING


def test_accept_twice_is_invalid_state(service):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)

    with pytest.raises(InvalidStateError):
        service.accept_chat(chat_id=chat_id, user_id=CARLA)


def test_accept_missing_chat(service):
    with pytest.raises(NotFoundError):
        service.accept_chat(chat_id=42, user_id=BRUNO)


def test_initiator_in_recipient_department_cannot_accept_own_chat(service):
    chat_id = _open(service, initiator=BRUNO).chat.chat_id

    with pytest.raises(AuthorizationError):
        service.accept_chat(chat_id=chat_id, user_id=BRUNO)


# -------- send / auto-accept --------
def test_reply_from_department_member_auto_accepts(service):
    chat_id = _open(service).chat.chat_id

    message = service.send_message(chat_id=chat_id, sender_id=CARLA, content="Posso ajudar")

    detail = service.get_chat_by_id(chat_id=chat_id, user_id=ANA)
    assert detail.chat.status == ChatStatus.ACCEPTED
    assert detail.chat.accepted_by == CARLA
    assert [m.message_id for m in detail.messages][-1] == message.message_id
    assert len(detail.messages) == 2
    assert message.sender_name == "Carla Dias"


def test_initiator_reply_never_auto_accepts(service):
    chat_id = _open(service, initiator=BRUNO).chat.chat_id

    service.send_message(chat_id=chat_id, sender_id=BRUNO, content="Alguém?")

    assert service.get_chat_by_id(chat_id=chat_id, user_id=BRUNO).chat.status == ChatStatus.PENDING


def test_initiator_reply_to_pending_chat_keeps_it_pending(service):
    chat_id = _open(service).chat.chat_id

    service.send_message(chat_id=chat_id, sender_id=ANA, content="Mais detalhes")

    detail = service.get_chat_by_id(chat_id=chat_id, user_id=ANA)
    assert detail.chat.status == ChatStatus.PENDING
    assert len(detail.messages) == 2


def test_reply_to_accepted_chat_keeps_first_acceptor(service):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)

    service.send_message(chat_id=chat_id, sender_id=CARLA, content="Também estou aqui")

    assert service.get_chat_by_id(chat_id=chat_id, user_id=ANA).chat.accepted_by == BRUNO


def test_failed_reply_does_not_leave_chat_accepted(service, repo, store):
    chat_id = _open(service).chat.chat_id
    repo.fail_appends = True

    with pytest.raises(RuntimeError):
        service.send_message(chat_id=chat_id, sender_id=CARLA, content="Posso ajudar", files=[_pdf()])

    chat = repo.get_chat(chat_id)
    assert chat.status == ChatStatus.PENDING
    assert chat.accepted_by is None
    assert len(repo.get_chat_detail(chat_id).messages) == 1
    assert store.blobs == {}
    assert len(store.deleted) == 1


def test_send_from_outsider_is_forbidden(service):
    chat_id = _open(service).chat.chat_id

    with pytest.raises(AuthorizationError):
        service.send_message(chat_id=chat_id, sender_id=DIEGO, content="oi")


def test_send_requires_content_or_files(service):
    chat_id = _open(service).chat.chat_id

    with pytest.raises(ValidationError):
        service.send_message(chat_id=chat_id, sender_id=ANA, content=" ")

    msg = service.send_message(chat_id=chat_id, sender_id=ANA, content="", files=[_pdf()])
    assert len(msg.attachments) == 1


def test_send_to_missing_chat(service):
    with pytest.raises(NotFoundError):
        service.send_message(chat_id=77, sender_id=ANA, content="oi")


@pytest.mark.parametrize("sender", [ANA, BRUNO, CARLA, DIEGO])
def test_send_to_closed_chat_is_invalid_state_for_everyone(service, sender):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)
    service.close_chat(chat_id=chat_id, user_id=ANA)

    with pytest.raises(InvalidStateError):
        service.send_message(chat_id=chat_id, sender_id=sender, content="ainda aí?")


def test_upload_failure_discards_stored_blobs(repo, directory, members):
    from src.department_chat.department_chat.attachments.service import AttachmentService
    from src.department_chat.department_chat.chats.service import ChatService
    from tests.fakes import FakeAttachmentStore

    store = FakeAttachmentStore(fail_after=1)
    service = ChatService(repo, directory, AttachmentService(store))
    chat_id = _open(service).chat.chat_id

    with pytest.raises(RuntimeError):
        service.send_message(chat_id=chat_id, sender_id=ANA, content="anexos", files=[_pdf("a.pdf"), _pdf("b.pdf")])

    assert store.blobs == {}
    assert len(service.get_chat_by_id(chat_id=chat_id, user_id=ANA).messages) == 1


# -------- close --------
def test_close_accepted_chat(service):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)

    detail = service.close_chat(chat_id=chat_id, user_id=ANA)

    assert detail.chat.status == ChatStatus.CLOSED
    assert detail.chat.closed_by == ANA
    assert detail.chat.closed_at is not None


def test_closed_chat_is_terminal(service):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)
    service.close_chat(chat_id=chat_id, user_id=BRUNO)

    with pytest.raises(InvalidStateError):
        service.close_chat(chat_id=chat_id, user_id=ANA)
    with pytest.raises(InvalidStateError):
        service.accept_chat(chat_id=chat_id, user_id=CARLA)
    with pytest.raises(InvalidStateError):
        service.reject_chat(chat_id=chat_id, user_id=CARLA)


def test_close_pending_chat_is_invalid_state(service, repo):
    chat_id = _open(service).chat.chat_id

    with pytest.raises(InvalidStateError):
        service.close_chat(chat_id=chat_id, user_id=ANA)
    assert repo.get_chat(chat_id).status == ChatStatus.PENDING


def test_close_by_outsider_is_forbidden(service):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)

    with pytest.raises(AuthorizationError):
        service.close_chat(chat_id=chat_id, user_id=DIEGO)


# -------- reject / delete --------
def test_reject_hard_deletes_pending_chat(service, store):
    chat_id = _open(service, files=[_pdf()]).chat.chat_id

    service.reject_chat(chat_id=chat_id, user_id=BRUNO)

    with pytest.raises(NotFoundError):
        service.get_chat_by_id(chat_id=chat_id, user_id=ANA)
    assert store.blobs == {}


def test_reject_by_outsider_or_initiator_is_forbidden(service):
    chat_id = _open(service).chat.chat_id

    with pytest.raises(AuthorizationError):
        service.reject_chat(chat_id=chat_id, user_id=DIEGO)
    with pytest.raises(AuthorizationError):
        service.reject_chat(chat_id=chat_id, user_id=ANA)


def test_reject_accepted_chat_is_invalid_state(service):
    chat_id = _open(service).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)

    with pytest.raises(InvalidStateError):
        service.reject_chat(chat_id=chat_id, user_id=CARLA)


def test_reject_missing_chat(service):
    with pytest.raises(NotFoundError):
        service.reject_chat(chat_id=5, user_id=BRUNO)


@pytest.mark.parametrize("close_first", [False, True])
def test_delete_by_participant_in_any_status(service, store, close_first):
    chat_id = _open(service, files=[_pdf()]).chat.chat_id
    service.accept_chat(chat_id=chat_id, user_id=BRUNO)
    if close_first:
        service.close_chat(chat_id=chat_id, user_id=BRUNO)

    service.delete_chat(chat_id=chat_id, user_id=CARLA)

    with pytest.raises(NotFoundError):
        service.get_chat_by_id(chat_id=chat_id, user_id=ANA)
    assert store.blobs == {}


def test_delete_by_outsider_is_forbidden(service):
    chat_id = _open(service).chat.chat_id

    with pytest.raises(AuthorizationError):
        service.delete_chat(chat_id=chat_id, user_id=DIEGO)
    with pytest.raises(NotFoundError):
        service.delete_chat(chat_id=chat_id + 100, user_id=ANA)


# -------- read state --------
def test_mark_read_only_touches_other_senders_messages(service):
    chat_id = _open(service).chat.chat_id
    service.send_message(chat_id=chat_id, sender_id=BRUNO, content="Recebido")

    assert service.mark_messages_as_read(chat_id=chat_id, user_id=BRUNO) == 1

    messages = service.get_chat_by_id(chat_id=chat_id, user_id=ANA).messages
    by_sender = {m.sender_id: m for m in messages}
    assert by_sender[ANA].is_read is True
    assert by_sender[ANA].read_at is not None
    assert by_sender[BRUNO].is_read is False


def test_mark_read_is_idempotent(service, counters):
    chat_id = _open(service).chat.chat_id
    service.send_message(chat_id=chat_id, sender_id=BRUNO, content="Oi Ana")

    service.mark_messages_as_read(chat_id=chat_id, user_id=ANA)
    after_once = counters.unread_count(ANA)
    assert service.mark_messages_as_read(chat_id=chat_id, user_id=ANA) == 0
    assert counters.unread_count(ANA) == after_once == 0


def test_mark_read_missing_chat(service):
    with pytest.raises(NotFoundError):
        service.mark_messages_as_read(chat_id=3, user_id=ANA)


def test_mark_read_by_outsider_is_forbidden(service, counters):
    chat_id = _open(service).chat.chat_id
    service.send_message(chat_id=chat_id, sender_id=BRUNO, content="Oi Ana")
    assert counters.unread_count(ANA) == 1

    with pytest.raises(AuthorizationError):
        service.mark_messages_as_read(chat_id=chat_id, user_id=DIEGO)

    assert counters.unread_count(ANA) == 1
    messages = service.get_chat_by_id(chat_id=chat_id, user_id=ANA).messages
    assert all(m.is_read is False for m in messages)


@pytest.mark.parametrize("user_id", [FABIO, 999, None])
def test_mark_read_needs_known_active_user(service, user_id):
    chat_id = _open(service).chat.chat_id
    service.send_message(chat_id=chat_id, sender_id=BRUNO, content="Oi Ana")

    with pytest.raises(AuthenticationError):
        service.mark_messages_as_read(chat_id=chat_id, user_id=user_id)

    messages = service.get_chat_by_id(chat_id=chat_id, user_id=ANA).messages
    assert all(m.is_read is False for m in messages)


# -------- reads --------
def test_get_chat_by_id_access(service):
    chat_id = _open(service).chat.chat_id

    assert service.get_chat_by_id(chat_id=chat_id, user_id=ANA).chat.chat_id == chat_id
    assert service.get_chat_by_id(chat_id=chat_id, user_id=CARLA).chat.chat_id == chat_id
    with pytest.raises(AuthorizationError):
        service.get_chat_by_id(chat_id=chat_id, user_id=DIEGO)
    with pytest.raises(NotFoundError):
        service.get_chat_by_id(chat_id=chat_id + 1, user_id=ANA)


def test_timeline_is_ordered_by_creation(service):
    chat_id = _open(service).chat.chat_id
    for i, sender in enumerate([BRUNO, ANA, CARLA, ANA]):
        service.send_message(chat_id=chat_id, sender_id=sender, content=f"m{i}")

    messages = service.get_chat_by_id(chat_id=chat_id, user_id=ANA).messages
    assert [m.content for m in messages] == ["Preciso de ajuda", "m0", "m1", "m2", "m3"]
    keys = [(m.created_at, m.message_id) for m in messages]
    assert keys == sorted(keys)


def test_lists_follow_participation(service):
    pending_id = _open(service).chat.chat_id
    accepted_id = _open(service, text="Outro assunto").chat.chat_id
    service.accept_chat(chat_id=accepted_id, user_id=BRUNO)
    closed_id = _open(service, text="Encerrar").chat.chat_id
    service.accept_chat(chat_id=closed_id, user_id=CARLA)
    service.close_chat(chat_id=closed_id, user_id=CARLA)

    pending = service.list_pending(department="jurídico")
    assert [s.chat.chat_id for s in pending] == [pending_id]

    assert {s.chat.chat_id for s in service.list_active(user_id=ANA)} == {pending_id, accepted_id}
    assert {s.chat.chat_id for s in service.list_active(user_id=CARLA)} == {accepted_id}
    assert service.list_active(user_id=DIEGO) == []

    assert [s.chat.chat_id for s in service.list_closed(user_id=ANA)] == [closed_id]
    assert [s.chat.chat_id for s in service.list_closed(user_id=BRUNO)] == [closed_id]
    assert service.list_closed(user_id=DIEGO) == []


def test_active_list_is_ordered_by_last_message(service):
    first = _open(service).chat.chat_id
    second = _open(service, text="Segundo").chat.chat_id
    service.send_message(chat_id=first, sender_id=ANA, content="subindo")

    summaries = service.list_active(user_id=ANA)
    assert [s.chat.chat_id for s in summaries] == [first, second]
    assert summaries[0].last_message.content == "subindo"


def test_user_without_department_sees_own_chats(service):
    chat_id = _open(service, initiator=EVA).chat.chat_id

    assert [s.chat.chat_id for s in service.list_active(user_id=EVA)] == [chat_id]
    assert service.department_of(EVA) == ""
    assert service.list_pending(department=None) == []


def test_full_scenario(service):
    detail = _open(service)
    assert detail.chat.status == ChatStatus.PENDING
    assert len(detail.messages) == 1
    chat_id = detail.chat.chat_id

    service.send_message(chat_id=chat_id, sender_id=CARLA, content="Olá, sou do jurídico")
    detail = service.get_chat_by_id(chat_id=chat_id, user_id=ANA)
    assert detail.chat.status == ChatStatus.ACCEPTED
    assert detail.chat.accepted_by == CARLA
    assert len(detail.messages) == 2

    service.close_chat(chat_id=chat_id, user_id=ANA)
    with pytest.raises(InvalidStateError):
        service.send_message(chat_id=chat_id, sender_id=BRUNO, content="tarde demais")
