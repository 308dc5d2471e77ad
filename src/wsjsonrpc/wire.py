"""JSON-RPC 2.0 wire format.

Implements the message shapes described at https://www.jsonrpc.org/specification
as used by the client:

- Request: {"jsonrpc": "2.0", "method": str, "id": str, "params": list | dict}
- Success reply: {"jsonrpc": "2.0", "result": any, "id": str}
- Error reply: {"jsonrpc": "2.0", "error": {"code", "message", "data"?}, "id": str}
- Notification: a request without an "id"
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from wsjsonrpc.error import RpcError

JSONRPC_VERSION = "2.0"


class WireParseError(ValueError):
    """Raised when an inbound payload is not a usable JSON-RPC message."""


@dataclass(frozen=True)
class JsonRpcRequest:
    """Outbound request: {"jsonrpc", "method", "id", "params"}"""

    method: str
    id: str
    params: list[Any] | dict[str, Any] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
            "id": self.id,
            "params": self.params,
        }


@dataclass(frozen=True)
class JsonRpcResult:
    """Success reply: {"jsonrpc", "result", "id"}"""

    id: Any
    result: Any
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {"jsonrpc": JSONRPC_VERSION, "result": self.result, "id": self.id}


@dataclass(frozen=True)
class JsonRpcErrorReply:
    """Error reply: {"jsonrpc", "error": {"code", "message", "data"?}, "id"}"""

    id: Any
    error: RpcError
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return {
            "jsonrpc": JSONRPC_VERSION,
            "error": self.error.to_json(),
            "id": self.id,
        }


@dataclass(frozen=True)
class JsonRpcNotification:
    """Any message that is not a reply to a pending call.

    ``raw`` keeps the decoded object as received, so notification handlers
    see every field the server sent, including an ``id`` that matched
    nothing.
    """

    raw: dict[str, Any]

    @property
    def method(self) -> str | None:
        return self.raw.get("method")

    @property
    def params(self) -> Any:
        return self.raw.get("params")

    @property
    def id(self) -> Any:
        return self.raw.get("id")

    def to_json(self) -> dict[str, Any]:
        """Convert to JSON object."""
        return self.raw


InboundMessage = JsonRpcResult | JsonRpcErrorReply | JsonRpcNotification


def _error_from_json(obj: Any) -> RpcError:
    """Build an ``RpcError`` from a reply's error member.

    Well-formed error objects are taken as sent. Anything else is wrapped
    in an INTERNAL_ERROR carrying the original member as ``data``.
    """
    if isinstance(obj, dict):
        code = obj.get("code")
        if isinstance(code, float) and code.is_integer():
            code = int(code)
        if isinstance(code, int) and not isinstance(code, bool):
            message = obj.get("message")
            if not isinstance(message, str):
                message = "" if message is None else str(message)
            return RpcError(code, message, obj.get("data"))
    return RpcError.internal(str(obj), obj)


def parse_message(data: str | bytes) -> InboundMessage:
    """Parse an inbound payload.

    Messages carrying ``result`` or ``error`` become replies; everything else
    is a notification. Whether a reply actually matches a pending call is
    decided by the client, which downgrades unmatched replies to
    notifications.

    Raises:
        WireParseError: If the payload is not a JSON object
    """
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Invalid JSON: {e}"
        raise WireParseError(msg) from e

    if not isinstance(obj, dict):
        msg = "JSON-RPC message must be an object"
        raise WireParseError(msg)

    if "result" in obj and "id" in obj:
        return JsonRpcResult(obj["id"], obj["result"], obj)
    if "error" in obj and "id" in obj:
        return JsonRpcErrorReply(obj["id"], _error_from_json(obj["error"]), obj)
    return JsonRpcNotification(obj)


def as_notification(message: InboundMessage) -> JsonRpcNotification:
    """View any inbound message as a notification."""
    if isinstance(message, JsonRpcNotification):
        return message
    return JsonRpcNotification(message.raw or message.to_json())


def serialize_request(request: JsonRpcRequest) -> str:
    """Serialize a request to JSON string."""
    return json.dumps(request.to_json())
