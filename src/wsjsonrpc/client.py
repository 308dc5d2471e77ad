"""Client implementation for JSON-RPC 2.0 over WebSocket.

The client owns one connection, the table of calls awaiting a reply, and the
close protocol. Application code talks to a live connection only through a
``ConnectionHandle`` passed to the ``on_open`` and ``on_notification``
callbacks.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from wsjsonrpc.error import ConnectionClosed, RpcError
from wsjsonrpc.ids import CallIdAllocator, method_of
from wsjsonrpc.transports import (
    INTERNAL_ERROR_REASON,
    NORMAL_CLOSURE_REASON,
    CloseCode,
    ConnectionState,
    create_transport,
    validate_endpoint,
)
from wsjsonrpc.wire import (
    JsonRpcErrorReply,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResult,
    WireParseError,
    as_notification,
    parse_message,
    serialize_request,
)

if TYPE_CHECKING:
    from wsjsonrpc.types import NotificationCallback, OpenCallback, Transport

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 10000
MIN_REQUEST_TIMEOUT = 100


@dataclass
class ClientConfig:
    """Configuration for the WebSocket JSON-RPC client.

    ``request_timeout`` is in milliseconds and is raised to
    ``MIN_REQUEST_TIMEOUT`` when lower. ``heartbeat`` and ``close_timeout``
    are in seconds and are passed to the WebSocket transport.
    """

    url: str
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    heartbeat: float | None = None
    close_timeout: float = 10.0

    def __post_init__(self) -> None:
        validate_endpoint(self.url)
        if self.request_timeout < MIN_REQUEST_TIMEOUT:
            logger.debug(
                "request_timeout=%s raised to %s ms",
                self.request_timeout,
                MIN_REQUEST_TIMEOUT,
            )
            self.request_timeout = MIN_REQUEST_TIMEOUT


@dataclass
class PendingCall:
    """A request that was sent and is waiting for its reply."""

    id: str
    method: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None

    def resolve(self, value: Any) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, error: Exception) -> None:
        self._cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    def _cancel_timer(self) -> None:
        # Cancelling a handle that already fired is a no-op.
        if self.timer is not None:
            self.timer.cancel()


class ConnectionHandle:
    """Capabilities of a live connection, handed to application callbacks.

    Example:
        async def on_open(conn: ConnectionHandle) -> None:
            print(await conn.query("system.listNotifications"))
            conn.close()
    """

    __slots__ = ("_client",)

    def __init__(self, client: Client) -> None:
        self._client = client

    @property
    def is_open(self) -> bool:
        return self._client.is_open

    async def query(self, method: str, *params: Any) -> Any:
        """Call ``method`` with positional ``params`` and wait for the reply."""
        return await self._client.query(method, *params)

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Discard pending calls and close the connection."""
        self._client.close(code, reason)


class Client:
    """WebSocket JSON-RPC 2.0 client.

    Correlates replies with pending calls by id, enforces per-call timeouts,
    and routes every message that matches no pending call to the
    notification callback. A client drives exactly one connection.
    """

    def __init__(self, config: ClientConfig, transport: Transport | None = None) -> None:
        self.config = config
        self._transport: Transport = transport or create_transport(
            config.url,
            heartbeat=config.heartbeat,
            close_timeout=config.close_timeout,
        )
        self._ids = CallIdAllocator()
        # Insertion ordered, so discards happen in registration order.
        self._pending: dict[str, PendingCall] = {}
        self._tasks: set[asyncio.Future[Any]] = set()
        self._on_notification: NotificationCallback | None = None
        self._started = False
        self._closing = False
        self.handle = ConnectionHandle(self)

    @property
    def is_open(self) -> bool:
        return not self._closing and self._transport.is_open

    @property
    def pending_ids(self) -> list[str]:
        """Ids of the calls currently waiting for a reply."""
        return list(self._pending)

    async def run(
        self,
        on_notification: NotificationCallback | None = None,
        on_open: OpenCallback | None = None,
    ) -> None:
        """Open the connection and process messages until it closes.

        Returns once the connection is closed and every callback task the
        client scheduled has finished.

        Raises:
            ConnectionClosed: If the connection ended with a code other than
                1000 (normal closure)
            RuntimeError: If the client was already run
        """
        if self._started:
            msg = "Client can only be run once"
            raise RuntimeError(msg)
        self._started = True
        self._on_notification = on_notification

        await self._transport.connect()
        logger.debug("Connection open: %s", self.config.url)

        try:
            if on_open is not None:
                self._dispatch(on_open, self.handle)

            async for payload in self._transport.messages():
                await self._handle_payload(payload)
        finally:
            self._closing = True
            self._discard_pending()
            await self._drain_tasks()
            await self._transport.release()

        code = self._transport.close_code
        reason = self._transport.close_reason
        if code is None:
            code = CloseCode.ABNORMAL_CLOSURE
        if code == CloseCode.NORMAL_CLOSURE:
            logger.debug("Connection closed normally")
            return None
        logger.debug("Connection closed: code=%s reason=%r", code, reason)
        raise ConnectionClosed(int(code), reason)

    async def query(self, method: str, *params: Any) -> Any:
        """Send a request and wait for its reply.

        Returns:
            The ``result`` member of the reply

        Raises:
            RpcError: The server's error; or code -32603 when the connection
                is closed, the call timed out, or it was discarded on close
        """
        if not self.is_open:
            raise RpcError.closed_connection()

        call_id = self._ids.allocate(method)
        data = serialize_request(JsonRpcRequest(method, call_id, list(params)))

        loop = asyncio.get_running_loop()
        call = PendingCall(call_id, method, loop.create_future())
        call.timer = loop.call_later(
            self.config.request_timeout / 1000, self._expire, call_id
        )
        # Registered before sending, so a reply that is processed while the
        # send is still being flushed finds its call.
        self._pending[call_id] = call

        logger.debug("Sending request: %s", data[:200])
        try:
            await self._transport.send(data)
        except asyncio.CancelledError:
            self._forget(call_id)
            raise
        except Exception as e:
            if not call.future.done():
                self._forget(call_id)
                raise RpcError.closed_connection() from e

        try:
            return await call.future
        except asyncio.CancelledError:
            self._forget(call_id)
            raise

    def close(self, code: int | None = None, reason: str | None = None) -> None:
        """Discard pending calls and close the connection.

        Without a code the connection is closed with 1000 "Normal Closure";
        otherwise ``code`` and ``reason`` are sent as given.
        """
        self._discard_pending()
        if not code:
            code, reason = CloseCode.NORMAL_CLOSURE, NORMAL_CLOSURE_REASON
        self._closing = True
        if self._transport.state is ConnectionState.CLOSED:
            return
        self._spawn(self._transport.close(code, reason or ""))

    async def _handle_payload(self, payload: str | bytes) -> None:
        try:
            message = parse_message(payload)
        except WireParseError as e:
            logger.error(
                "Malformed payload, closing connection: %s: %r", e, payload[:200]
            )
            self._closing = True
            self._discard_pending()
            await self._transport.close(CloseCode.INTERNAL_ERROR, INTERNAL_ERROR_REASON)
            return

        call = None
        if not isinstance(message, JsonRpcNotification) and isinstance(message.id, str):
            call = self._pending.pop(message.id, None)

        if call is None:
            # A reply whose call already timed out or was discarded also ends
            # up here and is delivered as a notification.
            if not isinstance(message, JsonRpcNotification):
                method = method_of(message.id) if isinstance(message.id, str) else ""
                logger.warning(
                    "Reply for unknown call id=%r (method %s) routed as notification",
                    message.id,
                    method or "?",
                )
            self._notify(as_notification(message))
            return

        logger.debug("Reply for %s", call.id)
        if isinstance(message, JsonRpcResult):
            call.resolve(message.result)
        elif isinstance(message, JsonRpcErrorReply):
            call.reject(message.error)

    def _notify(self, message: JsonRpcNotification) -> None:
        if self._on_notification is None:
            logger.debug("Notification dropped, no handler: %s", message.method)
            return
        self._dispatch(self._on_notification, message, self.handle)

    def _expire(self, call_id: str) -> None:
        call = self._pending.pop(call_id, None)
        if call is None:
            return
        logger.warning(
            "Call %s timed out after %s ms", call_id, self.config.request_timeout
        )
        call.reject(RpcError.timeout())

    def _forget(self, call_id: str) -> None:
        call = self._pending.pop(call_id, None)
        if call is not None:
            call._cancel_timer()

    def _discard_pending(self) -> None:
        calls = list(self._pending.values())
        self._pending.clear()
        for call in calls:
            logger.debug("Discarding pending call %s", call.id)
            call.reject(RpcError.discarded())

    def _dispatch(self, callback: Any, *args: Any) -> None:
        """Invoke a user callback, scheduling it when it is a coroutine."""
        try:
            result = callback(*args)
        except Exception:
            logger.exception("Error in callback %r", callback)
            return
        if inspect.isawaitable(result):
            self._spawn(result)

    def _spawn(self, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error in callback task", exc_info=exc)

    async def _drain_tasks(self) -> None:
        # Tasks may schedule further tasks (e.g. a handler calling close()).
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


async def open_ws_jsonrpc(
    endpoint: str,
    on_notification: NotificationCallback | None = None,
    on_open: OpenCallback | None = None,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> None:
    """Open a WebSocket JSON-RPC connection and run it until it closes.

    Args:
        endpoint: A ws:// or wss:// URL
        on_notification: Called as ``on_notification(message, handle)`` for
            every message that is not a reply to a pending call
        on_open: Called as ``on_open(handle)`` once the connection is open
        request_timeout: Per-call timeout in milliseconds (minimum 100)

    Raises:
        ConfigurationError: If the endpoint is not a WebSocket URL
        ConnectionClosed: If the connection ended with a code other than 1000

    Example:
        async def on_open(conn):
            print(await conn.query("system.listNotifications"))
            conn.close()

        await open_ws_jsonrpc("ws://127.0.0.1:6800/jsonrpc", None, on_open)
    """
    config = ClientConfig(str(endpoint), request_timeout=request_timeout)
    await Client(config).run(on_notification, on_open)
