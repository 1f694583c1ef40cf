"""Signal handling and graceful shutdown for the relay process.

Usage:
    ```python
    async def main():
        shutdown = GracefulShutdown(timeout=5.0)

        async with shutdown:
            await server.start()
            shutdown.register_cleanup(client.aclose)

            await shutdown.wait()
            await shutdown.drain(server.stop())
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

logger = logging.getLogger(__name__)

# Default grace period for in-flight requests, in seconds
DEFAULT_SHUTDOWN_TIMEOUT = 5.0

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ShutdownTimeoutError(Exception):
    """Raised when draining exceeds the shutdown timeout."""


class GracefulShutdown:
    """Traps SIGTERM/SIGINT and coordinates an orderly stop.

    The first signal sets an event that ``wait()`` returns on. A second
    signal exits the process immediately.
    """

    def __init__(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT) -> None:
        """Initialize the shutdown handler.

        Args:
            timeout: Maximum time in seconds ``drain()`` waits.
        """
        self._timeout = timeout

        self._shutdown_event: asyncio.Event | None = None
        self._shutdown_requested = False
        self._cleanup_callbacks: list[Callable[[], Any]] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []

    @property
    def timeout(self) -> float:
        """Shutdown timeout in seconds."""
        return self._timeout

    @property
    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a sync or async callback to run on exit."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown without a signal."""
        if not self._shutdown_requested:
            self._shutdown_requested = True
            logger.info("Shutdown requested programmatically")
            if self._shutdown_event:
                self._shutdown_event.set()

    async def wait(self) -> None:
        """Block until a signal arrives or request_shutdown() is called."""
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
        if self._shutdown_requested:
            self._shutdown_event.set()

        await self._shutdown_event.wait()

    async def drain(self, stopping: Awaitable[Any]) -> None:
        """Await a stop coroutine, bounded by the shutdown timeout.

        Raises:
            ShutdownTimeoutError: If ``stopping`` does not finish in time.
        """
        try:
            async with asyncio.timeout(self._timeout):
                await stopping
        except TimeoutError as e:
            raise ShutdownTimeoutError(
                f"shutdown did not complete within {self._timeout:g}s"
            ) from e

    def install_signal_handlers(self) -> None:
        """Install loop signal handlers for SIGTERM and SIGINT."""
        self._loop = asyncio.get_running_loop()
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._handle_signal, sig)
                self._installed.append(sig)
            except (NotImplementedError, ValueError, OSError) as e:
                # Windows event loops have no add_signal_handler.
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Remove installed signal handlers."""
        if self._loop is None:
            return

        for sig in self._installed:
            with suppress(ValueError, OSError):
                self._loop.remove_signal_handler(sig)
        self._installed.clear()

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._shutdown_requested:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)

        self._shutdown_requested = True
        logger.info("Received %s - initiating graceful shutdown...", sig.name)
        if self._shutdown_event:
            self._shutdown_event.set()

    async def run_cleanup_callbacks(self) -> None:
        """Run all registered cleanup callbacks."""
        for callback in self._cleanup_callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()
