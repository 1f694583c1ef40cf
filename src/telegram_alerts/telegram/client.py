"""Telegram Bot API client."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
SEND_MESSAGE_PATH = "/bot{token}/sendMessage"
DEFAULT_TIMEOUT = 10.0


class TelegramError(Exception):
    """Raised when a message cannot be delivered to Telegram."""


class TelegramClient:
    """Sends plain-text messages to one Telegram chat via the Bot API.

    The underlying ``httpx.AsyncClient`` is shared by all calls, so one
    instance can serve any number of concurrent requests. Each call makes
    exactly one POST and never retries.

    Example:
        ```python
        async with TelegramClient(token, chat_id) as client:
            await client.send_message("Heavy volume")
        ```
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            bot_token: Telegram bot token.
            chat_id: Target chat/channel ID.
            http_client: Optional HTTP client to use instead of a private one.
                It is left open by ``aclose()``.
            base_url: Bot API base URL; empty keeps the public endpoint.
            timeout: HTTP timeout in seconds for the private client.

        Raises:
            ValueError: If the bot token or chat ID is empty.
        """
        if not bot_token:
            raise ValueError("telegram: bot token is required")
        if not chat_id:
            raise ValueError("telegram: chat id is required")

        self.chat_id = chat_id
        self.base_url = base_url or TELEGRAM_API_BASE

        self._bot_token = bot_token
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _endpoint(self) -> httpx.URL:
        # An absolute path replaces whatever path the base URL carries.
        return httpx.URL(self.base_url).join(SEND_MESSAGE_PATH.format(token=self._bot_token))

    def _build_payload(self, text: str) -> dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }

    async def send_message(self, text: str) -> None:
        """Post text to the configured chat.

        Args:
            text: Message text; must not be empty.

        Raises:
            TelegramError: If the text is empty, the request cannot be built
                or sent, or Telegram answers with a non-2xx status.
        """
        if not text:
            raise TelegramError("telegram: message text is empty")

        # Errors below never include the URL: it carries the bot token.
        try:
            endpoint = self._endpoint()
        except httpx.InvalidURL as e:
            raise TelegramError("telegram: build url: invalid base url") from e

        try:
            body = json.dumps(self._build_payload(text)).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise TelegramError(f"telegram: marshal request: {e}") from e

        try:
            request = self._http.build_request(
                "POST",
                endpoint,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TelegramError(f"telegram: create request: {type(e).__name__}") from e

        try:
            response = await self._http.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TelegramError(f"telegram: send request: {type(e).__name__}") from e

        # The body is drained and closed on every path so the connection is reused.
        try:
            await response.aread()
        except httpx.HTTPError as e:
            raise TelegramError(f"telegram: send request: {type(e).__name__}") from e
        finally:
            await response.aclose()

        if not response.is_success:
            raise TelegramError(
                f"telegram: unexpected status {response.status_code} {response.reason_phrase}"
            )

        logger.debug("Telegram message delivered to chat %s", self.chat_id)

    async def aclose(self) -> None:
        """Close the private HTTP client, if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> TelegramClient:
        return self

    async def __aexit__(self, *_args: Any) -> None:
        await self.aclose()
