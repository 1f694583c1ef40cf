"""aiohttp application and listener for the webhook relay."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from telegram_alerts.server.handler import (
    DEFAULT_DELIVERY_TIMEOUT,
    Messenger,
    WebhookHandler,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_SHUTDOWN_TIMEOUT = 5.0
DEFAULT_CLIENT_MAX_SIZE = 1024**2


async def handle_healthz(_request: web.Request) -> web.Response:
    """Liveness probe; 200 whenever the server is up."""
    return web.Response(text="ok")


class WebhookServer:
    """HTTP server exposing ``/webhook`` and ``/healthz``.

    Example:
        ```python
        async with WebhookServer(client, port=8080):
            await shutdown.wait()
        ```
    """

    def __init__(
        self,
        messenger: Messenger,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        client_max_size: int = DEFAULT_CLIENT_MAX_SIZE,
    ) -> None:
        """Initialize the server.

        Args:
            messenger: Delivery backend for formatted alerts.
            host: Interface to bind.
            port: Port to listen on.
            delivery_timeout: Maximum seconds to wait for one delivery.
            shutdown_timeout: Grace period for in-flight requests on stop.
            client_max_size: Maximum request body size in bytes.
        """
        self.host = host
        self.port = port
        self.shutdown_timeout = shutdown_timeout
        self.client_max_size = client_max_size
        self.handler = WebhookHandler(messenger, delivery_timeout=delivery_timeout)

        self._runner: web.AppRunner | None = None

    @property
    def is_running(self) -> bool:
        """Check if the listener is up."""
        return self._runner is not None

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(client_max_size=self.client_max_size)
        # All methods are routed so the handler answers non-POST with 405.
        app.router.add_route("*", "/webhook", self.handler.handle)
        app.router.add_get("/healthz", handle_healthz)
        return app

    async def start(self) -> None:
        """Bind the listener and start serving."""
        if self._runner:
            logger.warning("Webhook server already running")
            return

        runner = web.AppRunner(
            self.create_app(),
            shutdown_timeout=self.shutdown_timeout,
            handler_cancellation=True,
        )
        await runner.setup()

        site = web.TCPSite(runner, self.host, self.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        logger.info("Listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop accepting requests and drain in-flight ones."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Webhook server stopped")

    async def __aenter__(self) -> WebhookServer:
        await self.start()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        await self.stop()
