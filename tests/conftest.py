import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from study_chat.chat.answers import AnswerGenerator, PlaceholderAnswerGenerator
from study_chat.chat.controller import ChatSessionController
from study_chat.chat.schema import Answer, AnswerRequest, UserContext
from study_chat.chat.service import ChatService
from study_chat.chat.stores import (
    InMemoryConversationStore,
    InMemoryMessageStore,
    SqlConversationStore,
    SqlMessageStore,
)
from study_chat.db import init_db
from study_chat.db.crud_helper import ConversationCRUD, MessageCRUD
from study_chat.models.chat import Conversation, Message


class FakeClock:
    """Deterministic clock: every reading is one second after the previous one."""

    def __init__(self, start: datetime = datetime(2025, 1, 20, 14, 30, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current

    def rewind(self, seconds: int) -> None:
        self.now = self.now - timedelta(seconds=seconds)


class FailingAnswerGenerator(AnswerGenerator):
    def __init__(self):
        self.calls = 0

    async def generate(self, request: AnswerRequest) -> Answer:
        self.calls += 1
        raise TimeoutError("model did not answer in time")


class GatedAnswerGenerator(AnswerGenerator):
    """Blocks every answer until ``release`` is set."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.requests = []

    async def generate(self, request: AnswerRequest) -> Answer:
        self.requests.append(request)
        self.entered.set()
        await self.release.wait()
        return Answer(content=f"Answer to: {request.content}", sources=["Process Management.pdf"])


class RecordingAnswerGenerator(PlaceholderAnswerGenerator):
    def __init__(self):
        self.requests = []

    async def generate(self, request: AnswerRequest) -> Answer:
        self.requests.append(request)
        return await super().generate(request)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def user():
    return UserContext(user_id="user-1")


@pytest.fixture
def other_user():
    return UserContext(user_id="user-2")


@pytest.fixture
def conversation_store(clock):
    return InMemoryConversationStore(clock=clock)


@pytest.fixture
def message_store(conversation_store, clock):
    return InMemoryMessageStore(conversation_store, clock=clock)


@pytest.fixture(params=["memory", "sql"])
def stores(request, clock, tmp_path):
    """Conversation and message store pair for each backend."""
    if request.param == "memory":
        conversations = InMemoryConversationStore(clock=clock)
        return conversations, InMemoryMessageStore(conversations, clock=clock)

    url = f"sqlite:///{tmp_path / 'chat.db'}"
    init_db(url)
    conversations_crud = ConversationCRUD(Conversation, url=url)
    return (
        SqlConversationStore(conversations_crud, clock=clock),
        SqlMessageStore(MessageCRUD(Message, url=url), clock=clock, conversations=conversations_crud),
    )


@pytest.fixture
def answers():
    return RecordingAnswerGenerator()


@pytest.fixture
def failing_answers():
    return FailingAnswerGenerator()


@pytest.fixture
def gated_answers():
    return GatedAnswerGenerator()


@pytest.fixture
def service(conversation_store, message_store, answers):
    return ChatService(conversation_store, message_store, answers, history_limit=10)


@pytest.fixture
def controller(service, user):
    return ChatSessionController(service, user)
