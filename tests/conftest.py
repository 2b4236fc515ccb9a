from __future__ import annotations

import pytest

from src.department_chat.department_chat.attachments.service import AttachmentService
from src.department_chat.department_chat.chats.counters import ChatCounterService
from src.department_chat.department_chat.chats.service import ChatService

from tests.fakes import FakeAttachmentStore, FakeDirectory, InMemoryChatRepository, default_members


@pytest.fixture
def members():
    return default_members()


@pytest.fixture
def repo(members):
    return InMemoryChatRepository(names={m.user_id: m.full_name for m in members})


@pytest.fixture
def directory(members):
    return FakeDirectory(members)


@pytest.fixture
def store():
    return FakeAttachmentStore()


@pytest.fixture
def attachment_service(store):
    return AttachmentService(store)


@pytest.fixture
def service(repo, directory, attachment_service):
    return ChatService(repo, directory, attachment_service)


@pytest.fixture
def counters(repo, directory):
    return ChatCounterService(repo, directory)
