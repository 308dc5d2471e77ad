"""wsjsonrpc - JSON-RPC 2.0 client over WebSocket

This module provides an asyncio client that correlates JSON-RPC replies with
pending calls over a single long-lived WebSocket connection, and routes
server-pushed notifications to application callbacks.
"""

from wsjsonrpc.client import (
    DEFAULT_REQUEST_TIMEOUT,
    MIN_REQUEST_TIMEOUT,
    Client,
    ClientConfig,
    ConnectionHandle,
    open_ws_jsonrpc,
)
from wsjsonrpc.error import ConfigurationError, ConnectionClosed, ErrorCode, RpcError
from wsjsonrpc.ids import CallIdAllocator
from wsjsonrpc.transports import CloseCode, ConnectionState, WebSocketTransport
from wsjsonrpc.wire import JsonRpcNotification

__version__ = "0.1.0"

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "ConnectionHandle",
    "open_ws_jsonrpc",
    "DEFAULT_REQUEST_TIMEOUT",
    "MIN_REQUEST_TIMEOUT",
    # Core types
    "CallIdAllocator",
    "JsonRpcNotification",
    # Transport
    "WebSocketTransport",
    "ConnectionState",
    "CloseCode",
    # Errors
    "RpcError",
    "ErrorCode",
    "ConfigurationError",
    "ConnectionClosed",
]
