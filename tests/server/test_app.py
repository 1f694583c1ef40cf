"""Tests for the webhook server application and lifecycle."""

from __future__ import annotations

import asyncio
import socket

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from telegram_alerts.server.app import WebhookServer


class NullMessenger:
    """Messenger that accepts everything."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    async def send_message(self, text: str) -> None:
        self.messages.append(text)


def free_port() -> int:
    """Find a free local TCP port."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port: int = sock.getsockname()[1]
        return port


class TestHealthz:
    """Tests for the liveness endpoint."""

    @pytest.mark.asyncio
    async def test_healthz(self) -> None:
        """/healthz should always answer 200 ok."""
        app = WebhookServer(NullMessenger()).create_app()

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/healthz")
            assert resp.status == 200
            assert await resp.text() == "ok"

    @pytest.mark.asyncio
    async def test_unknown_path(self) -> None:
        """Unknown paths should be 404."""
        app = WebhookServer(NullMessenger()).create_app()

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/nope")
            assert resp.status == 404


class TestWebhookServerLifecycle:
    """Tests for starting and stopping the listener."""

    @pytest.mark.asyncio
    async def test_start_stop(self) -> None:
        """The server should serve requests between start and stop."""
        port = free_port()
        messenger = NullMessenger()
        server = WebhookServer(messenger, host="127.0.0.1", port=port)

        await server.start()
        assert server.is_running is True
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    f"http://127.0.0.1:{port}/webhook", json={"message": "live"}
                )
                assert resp.status_code == 200
                assert resp.json() == {"status": "ok"}
        finally:
            await server.stop()

        assert server.is_running is False
        assert messenger.messages == ["live"]

    @pytest.mark.asyncio
    async def test_start_idempotent(self) -> None:
        """Starting twice should be safe."""
        server = WebhookServer(NullMessenger(), host="127.0.0.1", port=free_port())

        await server.start()
        await server.start()
        await server.stop()

        assert server.is_running is False

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self) -> None:
        """Stopping an idle server should be a no-op."""
        server = WebhookServer(NullMessenger())
        await server.stop()
        assert server.is_running is False

    @pytest.mark.asyncio
    async def test_port_in_use(self) -> None:
        """Binding an occupied port should raise and leave the server stopped."""
        with socket.socket() as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]

            server = WebhookServer(NullMessenger(), host="127.0.0.1", port=port)
            with pytest.raises(OSError):
                await server.start()

        assert server.is_running is False

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        """The async context manager should start and stop the server."""
        async with WebhookServer(NullMessenger(), host="127.0.0.1", port=free_port()) as server:
            assert server.is_running is True

        assert server.is_running is False

    @pytest.mark.asyncio
    async def test_stop_drains_in_flight_request(self) -> None:
        """An in-flight delivery should complete before stop() returns."""
        port = free_port()
        started = asyncio.Event()

        class SlowMessenger:
            async def send_message(self, text: str) -> None:
                started.set()
                await asyncio.sleep(0.2)

        server = WebhookServer(SlowMessenger(), host="127.0.0.1", port=port, shutdown_timeout=2.0)
        await server.start()

        async with httpx.AsyncClient() as client:
            request = asyncio.create_task(
                client.post(f"http://127.0.0.1:{port}/webhook", json={"message": "slow"})
            )
            await started.wait()
            await server.stop()
            resp = await request

        assert resp.status_code == 200


class TestClientDisconnect:
    """Tests for cancelling deliveries when the webhook caller goes away."""

    @pytest.mark.asyncio
    async def test_disconnect_cancels_delivery(self) -> None:
        """Dropping the connection mid-delivery should cancel the messenger call."""
        port = free_port()
        started = asyncio.Event()
        cancelled = asyncio.Event()

        class StalledMessenger:
            async def send_message(self, text: str) -> None:
                started.set()
                try:
                    await asyncio.sleep(10.0)
                except asyncio.CancelledError:
                    cancelled.set()
                    raise

        server = WebhookServer(
            StalledMessenger(), host="127.0.0.1", port=port, delivery_timeout=10.0
        )
        await server.start()
        try:
            _reader, writer = await asyncio.open_connection("127.0.0.1", port)
            body = b'{"message":"Test"}'
            writer.write(
                b"POST /webhook HTTP/1.1\r\n"
                b"Host: 127.0.0.1\r\n"
                b"Content-Type: application/json\r\n"
                b"Content-Length: " + str(len(body)).encode() + b"\r\n"
                b"\r\n" + body
            )
            await writer.drain()

            await asyncio.wait_for(started.wait(), timeout=2.0)
            writer.close()
            await writer.wait_closed()

            await asyncio.wait_for(cancelled.wait(), timeout=2.0)
        finally:
            await server.stop()

        assert cancelled.is_set()
