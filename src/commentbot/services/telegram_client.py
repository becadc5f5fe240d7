"""Client for the Telegram Bot HTTP API."""

import logging

import httpx

from commentbot.config import Settings
from commentbot.errors import MessengerError

logger = logging.getLogger(__name__)


class TelegramClient:
    """Outbound messaging over the Bot API."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        prefix, _, _ = token.partition(":")
        self.bot_id: int | None = int(prefix) if prefix.isdigit() else None
        self._client = httpx.AsyncClient(
            base_url=f"{api_url.rstrip('/')}/bot{token}/",
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "TelegramClient":
        return cls(token=settings.telegram_bot_token, api_url=settings.telegram_api_url)

    async def _call(self, method: str, payload: dict) -> dict:
        try:
            response = await self._client.post(method, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise MessengerError(
                f"{method} failed: HTTP {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise MessengerError(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise MessengerError(f"{method} returned invalid JSON") from e

        if not isinstance(body, dict):
            raise MessengerError(f"{method} returned an unexpected body: {body!r}")
        if not body.get("ok", False):
            raise MessengerError(f"{method} rejected: {body.get('description')}")
        return body.get("result") or {}

    async def send_message(
        self,
        chat_id: int,
        text: str,
        message_thread_id: int | None = None,
        reply_to_message_id: int | None = None,
    ) -> dict:
        """Send a text message, optionally in a topic and as a reply."""
        payload: dict = {"chat_id": chat_id, "text": text}
        if message_thread_id is not None:
            payload["message_thread_id"] = message_thread_id
        if reply_to_message_id is not None:
            payload["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        return await self._call("sendMessage", payload)

    async def set_webhook(self, url: str, allowed_updates: list[str]) -> None:
        """Point the bot's webhook at ``url``."""
        await self._call("setWebhook", {"url": url, "allowed_updates": allowed_updates})
        logger.info(f"Webhook set to {url}")

    async def aclose(self) -> None:
        await self._client.aclose()
