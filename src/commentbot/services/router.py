"""Routing of inbound updates to automatic replies.

Gating policy:
- Automatic forwards (channel posts relayed into the discussion group) are
  always commented on.
- Person-authored messages that reply to one of the bot's own messages are
  always answered.
- Any other person-authored message is answered only when the
  ReplyProbabilityGate hits with the configured reply probability.
"""

import logging
from typing import Protocol

from commentbot.models import (
    ConversationMessage,
    Message,
    RouteOutcome,
    ThreadKey,
    Update,
)
from commentbot.services.memory import ConversationMemory
from commentbot.services.orchestrator import ReplyOrchestrator
from commentbot.services.probability import ReplyProbabilityGate

logger = logging.getLogger(__name__)

MEDIA_PROMPT = "The post has no description. Write a short, fitting comment on its media."
COMMAND_PREFIX = "/"
MIN_TEXT_LENGTH = 2


class Messenger(Protocol):
    async def send_message(
        self,
        chat_id: int,
        text: str,
        message_thread_id: int | None = None,
        reply_to_message_id: int | None = None,
    ) -> dict: ...


def derive_thread_key(message: Message) -> ThreadKey:
    """Topic id, else the replied-to message id, else the message's own id."""
    if message.message_thread_id is not None:
        thread_id = message.message_thread_id
    elif message.reply_to_message is not None:
        thread_id = message.reply_to_message.message_id
    else:
        thread_id = message.message_id
    return ThreadKey(message.chat.id, thread_id)


class EventRouter:
    """Turns one inbound update into a routing outcome."""

    def __init__(
        self,
        orchestrator: ReplyOrchestrator,
        memory: ConversationMemory,
        messenger: Messenger,
        gate: ReplyProbabilityGate,
        bot_id: int | None,
        allowed_chat_ids: frozenset[int] | set[int] = frozenset(),
        reply_probability: float = 0.2,
    ):
        self.orchestrator = orchestrator
        self.memory = memory
        self.messenger = messenger
        self.gate = gate
        self.bot_id = bot_id
        self.allowed_chat_ids = frozenset(allowed_chat_ids)
        self.reply_probability = reply_probability

    async def handle(self, update: Update) -> RouteOutcome:
        """Route one update.

        Raises:
            StorageUnavailable: if thread memory can't be read or written.
            MessengerError: if the reply can't be sent.

        """
        if update.kind != "message" or update.message is None:
            logger.debug(f"Ignoring update {update.update_id} of kind {update.kind}")
            return RouteOutcome.IGNORED

        message = update.message
        logger.info(
            f"Message chat={message.chat.id} type={message.chat.type} "
            f"thread={message.message_thread_id} auto_fwd={message.is_automatic_forward} "
            f"from_bot={message.from_user.is_bot if message.from_user else None} "
            f"text_len={len(message.text or message.caption or '')}"
        )
        return await self.on_message(message)

    async def on_message(self, message: Message) -> RouteOutcome:
        if not message.chat.is_group:
            return self._ignore(message, "not a group chat")
        if self.allowed_chat_ids and message.chat.id not in self.allowed_chat_ids:
            return self._ignore(message, "chat not allowed")

        key = derive_thread_key(message)

        if message.is_automatic_forward:
            text = message.text or message.caption
            if not text or not text.strip():
                text = MEDIA_PROMPT
            await self.reply(key, message, text)
            return RouteOutcome.REPLIED_AUTOMATICALLY

        if not message.is_from_person:
            return self._ignore(message, "not authored by a person")

        text = (message.text or message.caption or "").strip()
        if not text:
            return self._ignore(message, "empty text")
        if text.startswith(COMMAND_PREFIX):
            return self._ignore(message, "command")
        if len(text) < MIN_TEXT_LENGTH:
            return self._ignore(message, "text too short")

        if not self.is_reply_to_bot(message) and not self.gate.hit(self.reply_probability):
            return self._ignore(message, "probability gate miss")

        await self.reply(key, message, text)
        return RouteOutcome.REPLIED_TO_PERSON

    def is_reply_to_bot(self, message: Message) -> bool:
        replied = message.reply_to_message
        if replied is None or replied.from_user is None or self.bot_id is None:
            return False
        return replied.from_user.id == self.bot_id

    async def reply(self, key: ThreadKey, message: Message, text: str) -> None:
        """Record the inbound turn, build a reply and send it threaded."""
        await self.memory.append(key, ConversationMessage.user(text))
        reply = await self.orchestrator.build_reply(key, text)
        await self.messenger.send_message(
            chat_id=message.chat.id,
            text=reply,
            message_thread_id=message.message_thread_id,
            reply_to_message_id=message.message_id,
        )
        logger.info(f"Replied in chat {message.chat.id} thread {key.thread_id}")

    def _ignore(self, message: Message, reason: str) -> RouteOutcome:
        logger.debug(f"Ignoring message {message.message_id} in chat {message.chat.id}: {reason}")
        return RouteOutcome.IGNORED
