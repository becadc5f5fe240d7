"""Shared fixtures and fakes for commentbot tests."""

import pytest

from commentbot.errors import ModelUnavailable, StorageUnavailable
from commentbot.models import ConversationMessage, Update
from commentbot.services.llm_client import LlmResponse
from commentbot.services.memory import InMemoryMemoryStore
from commentbot.services.orchestrator import ReplyOrchestrator
from commentbot.services.router import EventRouter

BOT_ID = 999
GROUP_ID = -1001


class FakeModel:
    """Language model returning canned replies and recording its inputs."""

    def __init__(self, replies: list[str] | None = None, fail: bool = False):
        self.replies = list(replies or [])
        self.fail = fail
        self.calls: list[list[ConversationMessage]] = []

    async def complete(self, messages):
        self.calls.append(list(messages))
        if self.fail:
            raise ModelUnavailable("backend down")
        if self.replies:
            return LlmResponse(text=self.replies.pop(0))
        return LlmResponse(text=f"reply {len(self.calls)}")


class FakeMessenger:
    """Records outbound messages."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send_message(self, chat_id, text, message_thread_id=None, reply_to_message_id=None):
        self.sent.append(
            {
                "chat_id": chat_id,
                "text": text,
                "message_thread_id": message_thread_id,
                "reply_to_message_id": reply_to_message_id,
            }
        )
        return {"message_id": 1}


class FixedGate:
    """Gate with a predetermined answer."""

    def __init__(self, result: bool):
        self.result = result
        self.calls: list[float] = []

    def hit(self, probability):
        self.calls.append(probability)
        return self.result


class UnavailableMemory(InMemoryMemoryStore):
    """Store whose every operation fails."""

    async def append(self, thread_key, message):
        raise StorageUnavailable("database unreachable")

    async def load_recent(self, thread_key, max_items):
        raise StorageUnavailable("database unreachable")

    async def upsert_summary(self, thread_key, summary):
        raise StorageUnavailable("database unreachable")

    async def get_summary(self, thread_key):
        raise StorageUnavailable("database unreachable")


def make_update(
    update_id: int = 1,
    message_id: int = 10,
    chat_id: int = GROUP_ID,
    chat_type: str = "supergroup",
    text: str | None = "hello there",
    caption: str | None = None,
    sender: dict | None = None,
    thread_id: int | None = None,
    reply_to: dict | None = None,
    automatic_forward: bool = False,
) -> Update:
    """Build an Update the way the webhook would parse it."""
    message: dict = {
        "message_id": message_id,
        "chat": {"id": chat_id, "type": chat_type},
        "text": text,
        "caption": caption,
        "is_automatic_forward": automatic_forward,
    }
    if sender is None and not automatic_forward:
        sender = {"id": 42, "is_bot": False, "first_name": "Ann"}
    if sender is not None:
        message["from"] = sender
    if thread_id is not None:
        message["message_thread_id"] = thread_id
    if reply_to is not None:
        message["reply_to_message"] = reply_to
    return Update.model_validate({"update_id": update_id, "message": message})


@pytest.fixture
def memory():
    return InMemoryMemoryStore()


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def orchestrator(model, memory):
    return ReplyOrchestrator(model, memory, max_context=20)


@pytest.fixture
def make_router(orchestrator, memory, messenger):
    """Factory for routers with a chosen gate and allow-list."""

    def _make(gate_result: bool = True, allowed: set[int] | None = None, bot_id: int | None = BOT_ID):
        return EventRouter(
            orchestrator=orchestrator,
            memory=memory,
            messenger=messenger,
            gate=FixedGate(gate_result),
            bot_id=bot_id,
            allowed_chat_ids=allowed or set(),
            reply_probability=0.2,
        )

    return _make
