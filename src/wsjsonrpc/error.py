"""Error types for the WebSocket JSON-RPC client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Standard JSON-RPC 2.0 error codes.

    See http://xmlrpc-epi.sourceforge.net/specs/rfc.fault_codes.php
    """

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RpcError(Exception):
    """RPC error with code, message, and optional data.

    Server-reported codes outside ``ErrorCode`` are kept as plain ints.
    """

    code: int
    message: str
    data: Any | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_json(self) -> dict[str, Any]:
        """Convert to the JSON-RPC error object."""
        error: dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @staticmethod
    def internal(message: str, data: Any | None = None) -> RpcError:
        """Create an INTERNAL_ERROR error."""
        return RpcError(ErrorCode.INTERNAL_ERROR, message, data)

    @staticmethod
    def closed_connection() -> RpcError:
        """Create the error raised when writing to a closed connection."""
        return RpcError.internal(
            "Closed connection. Trying to write to a closed socket."
        )

    @staticmethod
    def timeout() -> RpcError:
        """Create the error raised when a call receives no reply in time."""
        return RpcError.internal(
            "Timeout exceeded. No reply received in the specified duration."
        )

    @staticmethod
    def discarded() -> RpcError:
        """Create the error raised for calls still pending at close."""
        return RpcError.internal("Reply discarded. Not waiting for a reply anymore.")


class ConfigurationError(RpcError, ValueError):
    """Invalid client configuration, raised before any network activity."""

    def __init__(self, message: str, data: Any | None = None) -> None:
        super().__init__(ErrorCode.INVALID_REQUEST, message, data)


@dataclass(frozen=True)
class ConnectionClosed(Exception):
    """The connection ended with a close code other than normal closure."""

    code: int
    reason: str = ""

    def __str__(self) -> str:
        return f"{self.code} {self.reason}"
