"""aria2 download-manager client over WebSocket JSON-RPC.

This example demonstrates:
- Calling methods from the on_open callback
- Handling a server-reported error (wrong secret token)
- Printing server-pushed notifications
- Closing the connection peacefully or with an explicit close code

You can close the connection, or keep it open and pass the handle outside!
If you never call close() and the server never closes the connection,
open_ws_jsonrpc() never returns.

Run (with aria2c --enable-rpc listening on the default port):
    python examples/aria2/client.py [ws://127.0.0.1:6800/jsonrpc]
"""

import asyncio
import json
import logging
import sys

from wsjsonrpc import (
    CloseCode,
    ConnectionClosed,
    ConnectionHandle,
    JsonRpcNotification,
    RpcError,
    open_ws_jsonrpc,
)

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "ws://127.0.0.1:6800/jsonrpc"


async def on_notification(message: JsonRpcNotification, conn: ConnectionHandle) -> None:
    print("notification=", message.raw)


async def on_open(conn: ConnectionHandle) -> None:
    print("connected!")

    try:
        print(await conn.query("system.listNotifications"))
    except RpcError as e:
        print("query failed=", json.dumps(e.to_json()))
        conn.close(CloseCode.ABNORMAL_CLOSURE, "Abnormal Closure")
        return

    try:
        print(await conn.query("aria2.tellStopped", "token:wrong_secret", 0, 2))
    except RpcError as e:
        print("query failed=", json.dumps(e.to_json()))

        if e.message == "Unauthorized":
            # Further queries on this handle fail: the socket is closed now.
            conn.close(CloseCode.UNSUPPORTED_DATA, "Unsupported Data")
            return

    conn.close()


async def main(endpoint: str) -> int:
    try:
        await open_ws_jsonrpc(endpoint, on_notification, on_open, 5000)
    except ConnectionClosed as e:
        print(f"connection closed abnormally: {e}")
        return 1

    print("The connection ended peacefully, closed by the client itself.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_ENDPOINT)))
