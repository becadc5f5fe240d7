"""Client for an OpenAI-compatible chat completions API."""

import logging
from typing import Iterable

import httpx
from pydantic import BaseModel

from commentbot.config import Settings
from commentbot.errors import ModelUnavailable
from commentbot.models import ConversationMessage

logger = logging.getLogger(__name__)


class LlmResponse(BaseModel):
    """Text returned by the language model."""

    text: str


class ChatCompletionsClient:
    """HTTP client for ``/v1/chat/completions``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        temperature: float = 0.7,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        self.temperature = temperature
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompletionsClient":
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
        )

    async def complete(self, messages: Iterable[ConversationMessage]) -> LlmResponse:
        """
        Run one chat completion.

        Raises:
            ModelUnavailable: on transport errors, non-2xx responses or a
                body without a completion.

        """
        payload = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [{"role": m.role.value, "content": m.content} for m in messages],
        }
        try:
            response = await self._client.post("v1/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"LLM HTTP error: {e.response.status_code}")
            raise ModelUnavailable(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"LLM request error: {e}")
            raise ModelUnavailable(f"Request failed: {e}") from e

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ModelUnavailable(f"Malformed completion response: {e}") from e

        return LlmResponse(text=content or "")

    async def aclose(self) -> None:
        await self._client.aclose()
