"""Shared fixtures: a scripted in-memory transport for client tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import pytest

from wsjsonrpc.client import Client, ClientConfig
from wsjsonrpc.transports import ConnectionState


@dataclass(frozen=True)
class _PeerClose:
    code: int
    reason: str


class MockTransport:
    """Transport double driven by the test.

    Sent requests are decoded into ``sent`` after ``send_delay`` seconds.
    ``deliver`` queues an inbound payload and ``peer_close`` simulates the
    server closing the socket.
    """

    def __init__(self) -> None:
        self.state = ConnectionState.CONNECTING
        self.sent: list[dict[str, Any]] = []
        self.close_calls: list[tuple[int, str]] = []
        self.close_code: int | None = None
        self.close_reason = ""
        self.released = False
        self.send_delay = 0.0
        self.opened = asyncio.Event()
        self._inbox: asyncio.Queue[str | bytes | _PeerClose] = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def connect(self) -> None:
        self.state = ConnectionState.OPEN
        self.opened.set()

    async def send(self, data: str) -> None:
        if not self.is_open:
            msg = "WebSocket not connected"
            raise RuntimeError(msg)
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        self.sent.append(json.loads(data))

    async def messages(self) -> AsyncIterator[str | bytes]:
        while True:
            item = await self._inbox.get()
            if isinstance(item, _PeerClose):
                self._record_close(item.code, item.reason)
                return
            yield item

    async def close(self, code: int, reason: str) -> None:
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return
        self.close_calls.append((code, reason))
        self._record_close(code, reason)
        self._inbox.put_nowait(_PeerClose(code, reason))

    async def release(self) -> None:
        self.released = True
        self.state = ConnectionState.CLOSED

    def _record_close(self, code: int, reason: str) -> None:
        if self.close_code is None:
            self.close_code = code
            self.close_reason = reason
        self.state = ConnectionState.CLOSED

    # Test controls

    def deliver(self, payload: str | bytes | dict[str, Any]) -> None:
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        self._inbox.put_nowait(payload)

    def reply(self, request: dict[str, Any], result: Any) -> None:
        self.deliver({"jsonrpc": "2.0", "result": result, "id": request["id"]})

    def peer_close(self, code: int, reason: str = "") -> None:
        self._inbox.put_nowait(_PeerClose(code, reason))

    async def wait_sent(self, count: int = 1, timeout: float = 1.0) -> None:
        async with asyncio.timeout(timeout):
            while len(self.sent) < count:
                await asyncio.sleep(0)


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()


@pytest.fixture
def make_client(transport: MockTransport):
    """Build a client on the mock transport."""

    def _make(request_timeout: float = 1000) -> Client:
        config = ClientConfig("ws://127.0.0.1:6800/jsonrpc", request_timeout=request_timeout)
        return Client(config, transport=transport)

    return _make


@pytest.fixture
def start(transport: MockTransport):
    """Run a client in the background and wait until its connection is open."""

    async def _start(client: Client, on_notification=None, on_open=None) -> asyncio.Task:
        task = asyncio.create_task(client.run(on_notification, on_open))
        await transport.opened.wait()
        return task

    return _start


@pytest.fixture(scope="session")
def transport_factory() -> type[MockTransport]:
    """The mock transport class, for tests that build their own event loop."""
    return MockTransport
