"""Conversation models and inbound chat platform update types."""

from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ThreadKey(NamedTuple):
    """Identity of a conversation thread within a chat."""

    chat_id: int
    thread_id: int


class ConversationRole(str, Enum):
    """Message role, also used as the model wire role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """A single turn in a thread. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    role: ConversationRole = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    timestamp: datetime = Field(default_factory=utc_now, description="Creation timestamp")

    @classmethod
    def system(cls, text: str) -> "ConversationMessage":
        return cls(role=ConversationRole.SYSTEM, content=text)

    @classmethod
    def user(cls, text: str) -> "ConversationMessage":
        return cls(role=ConversationRole.USER, content=text)

    @classmethod
    def assistant(cls, text: str) -> "ConversationMessage":
        return cls(role=ConversationRole.ASSISTANT, content=text)


class RouteOutcome(str, Enum):
    """Terminal state of routing one inbound update."""

    IGNORED = "ignored"
    REPLIED_AUTOMATICALLY = "replied_automatically"
    REPLIED_TO_PERSON = "replied_to_person"


# ============= Inbound update types =============


class Chat(BaseModel):
    """Chat an update belongs to."""

    model_config = ConfigDict(extra="ignore")

    id: int
    type: str = Field(..., description="private, group, supergroup or channel")
    title: str | None = None

    @property
    def is_group(self) -> bool:
        return self.type in ("group", "supergroup")


class User(BaseModel):
    """Author of a message."""

    model_config = ConfigDict(extra="ignore")

    id: int
    is_bot: bool = False
    first_name: str = ""
    username: str | None = None


class Message(BaseModel):
    """Chat message carried by an update."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message_id: int
    chat: Chat
    from_user: User | None = Field(None, alias="from")
    message_thread_id: int | None = None
    reply_to_message: "Message | None" = None
    is_automatic_forward: bool = False
    text: str | None = None
    caption: str | None = None

    @property
    def is_from_person(self) -> bool:
        return self.from_user is not None and not self.from_user.is_bot


class Update(BaseModel):
    """One webhook-delivered update."""

    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: Message | None = None
    edited_message: Message | None = None
    channel_post: Message | None = None

    @property
    def kind(self) -> str:
        if self.message is not None:
            return "message"
        if self.edited_message is not None:
            return "edited_message"
        if self.channel_post is not None:
            return "channel_post"
        return "unknown"


Message.model_rebuild()
