"""WebSocket transport for the JSON-RPC client.

Wraps an aiohttp client WebSocket and tracks the close code and reason the
connection ended with, whichever side initiated the close.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from enum import Enum, IntEnum
from typing import Any, Self
from urllib.parse import urlparse

import aiohttp

from wsjsonrpc.error import ConfigurationError

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("ws", "wss")


class CloseCode(IntEnum):
    """WebSocket close codes used by the client.

    See https://developer.mozilla.org/en-US/docs/Web/API/CloseEvent/code
    """

    NORMAL_CLOSURE = 1000
    UNSUPPORTED_DATA = 1003
    ABNORMAL_CLOSURE = 1006
    INTERNAL_ERROR = 1011


NORMAL_CLOSURE_REASON = "Normal Closure"
ABNORMAL_CLOSURE_REASON = "Abnormal Closure"
INTERNAL_ERROR_REASON = "Internal Error"


class ConnectionState(Enum):
    """Lifecycle of the single connection a transport manages."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def validate_endpoint(url: str) -> str:
    """Check that ``url`` uses a WebSocket scheme.

    Raises:
        ConfigurationError: If the scheme is not ws:// or wss://
    """
    scheme = urlparse(url).scheme.lower()
    if scheme not in SUPPORTED_SCHEMES:
        msg = f"You must specify ws:// or wss:// protocol, got: {url}"
        raise ConfigurationError(msg)
    return url


class WebSocketTransport:
    """WebSocket transport implementation.

    Provides a single text-message duplex channel over aiohttp. The
    transport can be opened once; there is no reconnection.
    """

    def __init__(
        self,
        url: str,
        heartbeat: float | None = None,
        close_timeout: float = 10.0,
    ) -> None:
        """Initialize the WebSocket transport.

        Args:
            url: The WebSocket URL (e.g., "ws://127.0.0.1:6800/jsonrpc")
            heartbeat: Ping interval in seconds, or None to disable
            close_timeout: Seconds to wait for the peer's close frame

        Raises:
            ConfigurationError: If the URL scheme is not ws:// or wss://
        """
        self.url = validate_endpoint(url)
        self.heartbeat = heartbeat
        self.close_timeout = close_timeout
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._state = ConnectionState.CONNECTING
        self._requested_close: tuple[int, str] | None = None
        self._close_code: int | None = None
        self._close_reason = ""

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.release()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return (
            self._state is ConnectionState.OPEN
            and self._ws is not None
            and not self._ws.closed
        )

    @property
    def close_code(self) -> int | None:
        return self._close_code

    @property
    def close_reason(self) -> str:
        return self._close_reason

    async def connect(self) -> None:
        """Open the WebSocket connection.

        Raises:
            RuntimeError: If the transport was already used
            aiohttp.ClientError: If the handshake fails
        """
        if self._session is not None or self._state is not ConnectionState.CONNECTING:
            msg = "WebSocket transport can only be opened once"
            raise RuntimeError(msg)

        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(
                self.url,
                heartbeat=self.heartbeat,
                timeout=aiohttp.ClientWSTimeout(ws_close=self.close_timeout),
            )
        except BaseException:
            self._state = ConnectionState.CLOSED
            await self._session.close()
            self._session = None
            raise

        self._state = ConnectionState.OPEN
        logger.debug("WebSocket connected to %s", self.url)

    async def send(self, data: str) -> None:
        """Send a text message.

        Raises:
            RuntimeError: If transport is not connected
        """
        if not self.is_open:
            msg = "WebSocket not connected"
            raise RuntimeError(msg)

        await self._ws.send_str(data)  # type: ignore[union-attr]

    async def messages(self) -> AsyncIterator[str | bytes]:
        """Yield inbound payloads until the connection closes.

        Raises:
            RuntimeError: If transport is not connected
        """
        if self._ws is None:
            msg = "WebSocket not connected"
            raise RuntimeError(msg)

        while True:
            msg = await self._ws.receive()

            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                yield msg.data
                continue

            if msg.type is aiohttp.WSMsgType.CLOSE:
                # Peer-initiated close; aiohttp has already echoed the frame.
                self._record_close(msg.data, msg.extra or "")
            elif msg.type is aiohttp.WSMsgType.ERROR:
                logger.warning("WebSocket error: %s", self._ws.exception())
                self._record_close(CloseCode.ABNORMAL_CLOSURE, ABNORMAL_CLOSURE_REASON)
            else:
                # CLOSING / CLOSED: we initiated the close or the socket dropped.
                self._record_close(*self._fallback_close())
            return

    def _fallback_close(self) -> tuple[int, str]:
        if self._requested_close is not None:
            return self._requested_close
        if self._ws is not None and self._ws.close_code is not None:
            return self._ws.close_code, ""
        return CloseCode.ABNORMAL_CLOSURE, ABNORMAL_CLOSURE_REASON

    def _record_close(self, code: Any, reason: str) -> None:
        if self._close_code is None:
            if code is None:
                code = CloseCode.ABNORMAL_CLOSURE
            self._close_code = int(code)
            self._close_reason = reason
            logger.debug(
                "WebSocket closed: code=%s reason=%r", self._close_code, reason
            )
        self._state = ConnectionState.CLOSED

    async def close(self, code: int, reason: str) -> None:
        """Send a close frame with ``code`` and ``reason``.

        Redundant calls, and calls after the peer already closed, are no-ops.
        """
        if self._ws is None or self._state in (
            ConnectionState.CLOSING,
            ConnectionState.CLOSED,
        ):
            return

        self._state = ConnectionState.CLOSING
        self._requested_close = (code, reason)
        logger.debug("Closing WebSocket: code=%s reason=%r", code, reason)
        await self._ws.close(code=code, message=reason.encode("utf-8"))
        self._record_close(code, reason)

    async def release(self) -> None:
        """Close the WebSocket (if still open) and the HTTP session."""
        if self._ws is not None and not self._ws.closed:
            await self.close(CloseCode.NORMAL_CLOSURE, NORMAL_CLOSURE_REASON)
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._state = ConnectionState.CLOSED


def create_transport(url: str, **kwargs: Any) -> WebSocketTransport:
    """Factory function to create a transport for ``url``.

    Args:
        url: The endpoint URL
        **kwargs: Additional transport options (heartbeat, close_timeout)

    Raises:
        ConfigurationError: If the URL scheme is not supported

    Examples:
        >>> transport = create_transport("ws://127.0.0.1:6800/jsonrpc")
        >>> transport = create_transport("wss://example.com/jsonrpc")
    """
    return WebSocketTransport(
        url,
        heartbeat=kwargs.get("heartbeat"),
        close_timeout=kwargs.get("close_timeout", 10.0),
    )
