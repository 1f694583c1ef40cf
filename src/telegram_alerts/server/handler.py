"""Webhook request handling: decode, validate, format, deliver."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from aiohttp import web
from pydantic import ValidationError

from telegram_alerts.server.formatter import format_alert
from telegram_alerts.server.models import AlertPayload, InvalidAlertError

logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_TIMEOUT = 5.0

OK_BODY = '{"status":"ok"}'


class Messenger(Protocol):
    """Protocol for anything that can deliver a text message."""

    async def send_message(self, text: str) -> None:
        """Deliver text. Raises on failure."""
        ...


def _error_response(status: int, reason: str, **kwargs: object) -> web.Response:
    return web.json_response({"error": reason}, status=status, **kwargs)


class WebhookHandler:
    """Turns one TradingView webhook request into one delivered message.

    Requests share nothing but the messenger, so any number may run
    concurrently. Delivery is attempted at most once per request and is
    bounded by ``delivery_timeout``; cancelling the request task cancels
    the delivery as well.
    """

    def __init__(
        self,
        messenger: Messenger,
        *,
        delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT,
    ) -> None:
        """Initialize the handler.

        Args:
            messenger: Delivery backend for formatted alerts.
            delivery_timeout: Maximum seconds to wait for one delivery.
        """
        self.messenger = messenger
        self.delivery_timeout = delivery_timeout

    async def handle(self, request: web.Request) -> web.Response:
        """Handle a request to the webhook endpoint."""
        if request.method != "POST":
            return _error_response(405, "method not allowed", headers={"Allow": "POST"})

        body = await request.read()

        try:
            payload = AlertPayload.model_validate_json(body)
        except ValidationError as e:
            logger.debug("Rejected webhook payload: %d decode error(s)", e.error_count())
            return _error_response(400, "invalid json payload")

        try:
            payload.check_required_fields()
        except InvalidAlertError as e:
            logger.debug("Rejected webhook payload: %s", e)
            return _error_response(400, str(e))

        text = format_alert(payload)

        try:
            async with asyncio.timeout(self.delivery_timeout):
                await self.messenger.send_message(text)
        except Exception as e:
            logger.error("Telegram send failed: %s", str(e) or type(e).__name__)
            return _error_response(502, "failed to deliver alert")

        logger.info("Relayed alert for %s", payload.ticker or "(no symbol)")
        return web.json_response(text=OK_BODY)
