"""Core type definitions for the WebSocket JSON-RPC client."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from wsjsonrpc.client import ConnectionHandle
    from wsjsonrpc.transports import ConnectionState
    from wsjsonrpc.wire import JsonRpcNotification


class Transport(Protocol):
    """Duplex message transport used by the client.

    Implementations deliver one payload per inbound message and record the
    close code and reason once the connection has ended.
    """

    @property
    def state(self) -> ConnectionState: ...

    @property
    def is_open(self) -> bool: ...

    @property
    def close_code(self) -> int | None: ...

    @property
    def close_reason(self) -> str: ...

    async def connect(self) -> None:
        """Open the connection."""
        ...

    async def send(self, data: str) -> None:
        """Send one text message."""
        ...

    def messages(self) -> AsyncIterator[str | bytes]:
        """Iterate over inbound payloads until the connection closes."""
        ...

    async def close(self, code: int, reason: str) -> None:
        """Send a close frame. A no-op once the connection is closed."""
        ...

    async def release(self) -> None:
        """Free any resources still held after the connection ended."""
        ...


OpenCallback = Callable[["ConnectionHandle"], Awaitable[Any] | Any]
NotificationCallback = Callable[
    ["JsonRpcNotification", "ConnectionHandle"], Awaitable[Any] | Any
]
