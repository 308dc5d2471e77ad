"""Tests for the WebSocket transport."""

from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from wsjsonrpc.error import ConfigurationError
from wsjsonrpc.transports import (
    CloseCode,
    ConnectionState,
    WebSocketTransport,
    create_transport,
    validate_endpoint,
)

URL = "ws://127.0.0.1:6800/jsonrpc"


def ws_message(msg_type: aiohttp.WSMsgType, data: object = None, extra: object = None) -> Mock:
    msg = Mock()
    msg.type = msg_type
    msg.data = data
    msg.extra = extra
    return msg


def open_transport(*messages: Mock) -> tuple[WebSocketTransport, AsyncMock]:
    """A transport wired to a mocked aiohttp WebSocket."""
    transport = WebSocketTransport(URL)
    mock_ws = AsyncMock()
    mock_ws.closed = False
    mock_ws.close_code = None
    mock_ws.exception = Mock(return_value=RuntimeError("Test error"))
    mock_ws.receive = AsyncMock(side_effect=list(messages))
    transport._ws = mock_ws
    transport._state = ConnectionState.OPEN
    return transport, mock_ws


async def collect(transport: WebSocketTransport) -> list[object]:
    return [payload async for payload in transport.messages()]


class TestEndpointValidation:
    """Tests for URL scheme validation."""

    @pytest.mark.parametrize(
        "url", [URL, "wss://example.com/jsonrpc", "WS://127.0.0.1:6800/jsonrpc"]
    )
    def test_accepts_websocket_schemes(self, url: str) -> None:
        assert validate_endpoint(url) == url

    @pytest.mark.parametrize(
        "url", ["http://127.0.0.1:6800/jsonrpc", "https://example.com", "ftp://x", "127.0.0.1:6800"]
    )
    def test_rejects_other_schemes(self, url: str) -> None:
        with pytest.raises(ConfigurationError, match="ws:// or wss://"):
            validate_endpoint(url)

    def test_transport_validates_on_construction(self) -> None:
        with pytest.raises(ConfigurationError):
            WebSocketTransport("http://127.0.0.1:6800/jsonrpc")


class TestTransportFactory:
    """Tests for transport factory function."""

    def test_create_websocket_transport(self) -> None:
        transport = create_transport(URL)
        assert isinstance(transport, WebSocketTransport)
        assert transport.url == URL
        assert transport.heartbeat is None
        assert transport.close_timeout == 10.0

    def test_create_with_options(self) -> None:
        transport = create_transport("wss://example.com/jsonrpc", heartbeat=15.0, close_timeout=2.0)
        assert transport.heartbeat == 15.0
        assert transport.close_timeout == 2.0

    def test_create_transport_invalid_scheme(self) -> None:
        with pytest.raises(ConfigurationError):
            create_transport("ftp://example.com/rpc")


@pytest.mark.asyncio
class TestWebSocketTransport:
    """Test WebSocket transport implementation."""

    async def test_initial_state(self) -> None:
        transport = WebSocketTransport(URL)
        assert transport.state is ConnectionState.CONNECTING
        assert not transport.is_open
        assert transport.close_code is None
        assert transport._session is None

    async def test_send_without_connection_raises_error(self) -> None:
        transport = WebSocketTransport(URL)
        with pytest.raises(RuntimeError, match="not connected"):
            await transport.send('{"jsonrpc": "2.0"}')

    async def test_messages_without_connection_raises_error(self) -> None:
        transport = WebSocketTransport(URL)
        with pytest.raises(RuntimeError, match="not connected"):
            await transport.messages().__anext__()

    async def test_connect(self) -> None:
        mock_ws = AsyncMock()
        mock_ws.closed = False
        mock_session = Mock()
        mock_session.ws_connect = AsyncMock(return_value=mock_ws)
        mock_session.close = AsyncMock()

        transport = WebSocketTransport(URL, heartbeat=20.0)
        with patch("aiohttp.ClientSession", return_value=mock_session):
            await transport.connect()

        assert transport.is_open
        assert transport.state is ConnectionState.OPEN
        args, kwargs = mock_session.ws_connect.call_args
        assert args == (URL,)
        assert kwargs["heartbeat"] == 20.0

        with pytest.raises(RuntimeError, match="only be opened once"):
            await transport.connect()

    async def test_connect_failure_releases_session(self) -> None:
        mock_session = Mock()
        mock_session.ws_connect = AsyncMock(
            side_effect=aiohttp.ClientConnectionError("refused")
        )
        mock_session.close = AsyncMock()

        transport = WebSocketTransport(URL)
        with patch("aiohttp.ClientSession", return_value=mock_session):
            with pytest.raises(aiohttp.ClientConnectionError):
                await transport.connect()

        mock_session.close.assert_awaited_once()
        assert transport.state is ConnectionState.CLOSED
        assert transport._session is None

    async def test_send_text(self) -> None:
        transport, mock_ws = open_transport()
        await transport.send('{"jsonrpc": "2.0"}')
        mock_ws.send_str.assert_awaited_once_with('{"jsonrpc": "2.0"}')

    async def test_messages_until_peer_close(self) -> None:
        transport, _ = open_transport(
            ws_message(aiohttp.WSMsgType.TEXT, '{"a": 1}'),
            ws_message(aiohttp.WSMsgType.BINARY, b'{"b": 2}'),
            ws_message(aiohttp.WSMsgType.CLOSE, 4000, "Server going away"),
        )

        assert await collect(transport) == ['{"a": 1}', b'{"b": 2}']
        assert transport.close_code == 4000
        assert transport.close_reason == "Server going away"
        assert transport.state is ConnectionState.CLOSED
        assert not transport.is_open

    async def test_error_reports_abnormal_closure(self) -> None:
        transport, _ = open_transport(ws_message(aiohttp.WSMsgType.ERROR))

        assert await collect(transport) == []
        assert transport.close_code == CloseCode.ABNORMAL_CLOSURE
        assert transport.close_reason == "Abnormal Closure"

    async def test_closed_without_frame(self) -> None:
        transport, _ = open_transport(ws_message(aiohttp.WSMsgType.CLOSED))

        assert await collect(transport) == []
        assert transport.close_code == 1006

    async def test_local_close_code_wins(self) -> None:
        """A close we requested is reported with our code and reason."""
        transport, mock_ws = open_transport(ws_message(aiohttp.WSMsgType.CLOSING))

        await transport.close(1003, "Unsupported Data")
        mock_ws.close.assert_awaited_once_with(code=1003, message=b"Unsupported Data")

        assert await collect(transport) == []
        assert transport.close_code == 1003
        assert transport.close_reason == "Unsupported Data"

    async def test_close_is_idempotent(self) -> None:
        transport, mock_ws = open_transport()

        await transport.close(1000, "Normal Closure")
        await transport.close(1011, "Internal Error")

        mock_ws.close.assert_awaited_once()
        assert transport.close_code == 1000
        assert transport.state is ConnectionState.CLOSED

    async def test_close_without_connection(self) -> None:
        transport = WebSocketTransport(URL)
        await transport.close(1000, "Normal Closure")
        assert transport.close_code is None

    async def test_release(self) -> None:
        transport, mock_ws = open_transport()
        mock_session = Mock()
        mock_session.close = AsyncMock()
        transport._session = mock_session

        await transport.release()

        mock_ws.close.assert_awaited_once_with(code=1000, message=b"Normal Closure")
        mock_session.close.assert_awaited_once()
        assert transport._session is None
        assert transport.state is ConnectionState.CLOSED

    async def test_context_manager(self) -> None:
        mock_ws = AsyncMock()
        mock_ws.closed = True
        mock_session = Mock()
        mock_session.ws_connect = AsyncMock(return_value=mock_ws)
        mock_session.close = AsyncMock()

        with patch("aiohttp.ClientSession", return_value=mock_session):
            async with WebSocketTransport(URL) as transport:
                assert transport._session is mock_session

        mock_session.close.assert_awaited_once()
        mock_ws.close.assert_not_awaited()
