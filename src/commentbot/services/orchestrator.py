"""Reply generation with thread memory and lazy summarization.

Each reply is built from a fixed system prompt, the thread's rolling summary
and its most recent messages. When the recent window is observed full, a
second model call compresses that window into a new summary so the context
that is about to fall out of the window survives in compressed form.
"""

import asyncio
import logging
from typing import Protocol

from commentbot.errors import ModelUnavailable
from commentbot.models import ConversationMessage, ConversationRole, ThreadKey
from commentbot.services.llm_client import LlmResponse
from commentbot.services.memory import ConversationMemory

logger = logging.getLogger(__name__)

MIN_CONTEXT_MESSAGES = 4

SYSTEM_PROMPT = """You are a member of a group chat that discusses posts from a linked channel.
Write short, friendly, on-topic comments (one to three sentences).
Reply in the language of the conversation. Do not reveal that you are a bot
unless asked directly, and never share private data about participants."""

SUMMARY_PREFIX = "Thread summary so far: "

SUMMARIZE_PROMPT = """Summarize the conversation below in one or two sentences.
Keep facts and participant nicknames, leave out private data."""

PLACEHOLDER_REPLY = "Still thinking of a witty answer 🤔"
EMPTY_REPLY = "📝"


class LanguageModel(Protocol):
    async def complete(self, messages: list[ConversationMessage]) -> LlmResponse: ...


class ReplyOrchestrator:
    """Builds replies for a thread and keeps its memory up to date."""

    def __init__(
        self,
        model: LanguageModel,
        memory: ConversationMemory,
        max_context: int = 20,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        self.model = model
        self.memory = memory
        self.max_context = max(MIN_CONTEXT_MESSAGES, max_context)
        self.system_prompt = system_prompt
        self._pending: set[asyncio.Task] = set()

    def build_messages(
        self,
        summary: str | None,
        history: list[ConversationMessage],
        user_text: str,
    ) -> list[ConversationMessage]:
        """Assemble model input.

        Structure:
        1. System prompt
        2. Summary of earlier conversation (if exists)
        3. Up to ``max_context`` recent messages, oldest first
        4. The user turn being answered
        """
        messages = [ConversationMessage.system(self.system_prompt)]
        if summary and summary.strip():
            messages.append(ConversationMessage.system(f"{SUMMARY_PREFIX}{summary}"))
        messages.extend(history[-self.max_context:])
        messages.append(ConversationMessage.user(user_text))
        return messages

    async def load_history(
        self, thread_key: ThreadKey, user_text: str
    ) -> list[ConversationMessage]:
        """Load the recent window preceding the turn being answered.

        The router records the inbound turn before asking for a reply, so one
        extra message is read and the newest is set aside when it is that turn.
        """
        loaded = await self.memory.load_recent(thread_key, self.max_context + 1)
        if loaded and loaded[-1].role == ConversationRole.USER and loaded[-1].content == user_text:
            loaded = loaded[:-1]
        return loaded[-self.max_context:]

    async def build_reply(self, thread_key: ThreadKey, user_text: str) -> str:
        """Generate a reply to ``user_text`` in the thread.

        Raises:
            StorageUnavailable: if the thread's memory can't be read or the
                reply can't be recorded.

        """
        history = await self.load_history(thread_key, user_text)
        summary = await self.memory.get_summary(thread_key)

        messages = self.build_messages(summary, history, user_text)

        try:
            response = await self.model.complete(messages)
        except ModelUnavailable as e:
            logger.warning(f"Model unavailable for thread {thread_key}, sending placeholder: {e}")
            return PLACEHOLDER_REPLY

        reply = response.text.strip() or EMPTY_REPLY
        await self.memory.append(thread_key, ConversationMessage.assistant(reply))

        if len(history) >= self.max_context:
            self.trigger_summarization(thread_key, history, summary)

        return reply

    def trigger_summarization(
        self,
        thread_key: ThreadKey,
        history: list[ConversationMessage],
        previous_summary: str | None = None,
    ) -> None:
        """Fire-and-forget summary refresh for a thread."""
        task = asyncio.create_task(self.summarize(thread_key, history, previous_summary))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.debug(f"Scheduled summarization for thread {thread_key}")

    async def summarize(
        self,
        thread_key: ThreadKey,
        history: list[ConversationMessage],
        previous_summary: str | None = None,
    ) -> None:
        """Summarize ``history`` and store it as the thread's summary.

        Failures are logged and absorbed; the primary reply never depends
        on this succeeding.
        """
        instruction = SUMMARIZE_PROMPT
        if previous_summary and previous_summary.strip():
            instruction = f"{instruction}\nEarlier summary to fold in: {previous_summary}"

        try:
            response = await self.model.complete(
                [ConversationMessage.system(instruction), *history]
            )
            summary = response.text.strip()
            if not summary:
                logger.warning(f"Empty summary for thread {thread_key}, keeping previous")
                return
            await self.memory.upsert_summary(thread_key, summary)
            logger.info(f"Summary updated for thread {thread_key} ({len(history)} messages)")
        except Exception as e:
            logger.warning(f"Summarization failed for thread {thread_key}: {e}")

    async def drain(self) -> None:
        """Wait for scheduled summarizations to finish."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)
