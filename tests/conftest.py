"""
Shared fixtures for mailtap tests.

FakeCDPServer is a real local WebSocket server that records the command
frames it receives and lets a test push responses and events back.
"""

import asyncio
import json
from typing import Any

import pytest
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from mailtap.cdp import CDPConnection
from mailtap.config import ConnectionOptions


class FakeCDPServer:
    """Scriptable stand-in for a DevTools WebSocket endpoint."""

    def __init__(self) -> None:
        self.received: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._connection: ServerConnection | None = None
        self._connected = asyncio.Event()
        self.connections = 0
        self._server = None
        self.port = 0

    @property
    def ws_url(self) -> str:
        return f"ws://127.0.0.1:{self.port}/devtools/page/TARGET-1"

    async def start(self) -> None:
        self._server = await serve(self._handler, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handler(self, connection: ServerConnection) -> None:
        self.connections += 1
        self._connection = connection
        self._connected.set()
        try:
            async for message in connection:
                await self.received.put(json.loads(message))
        except ConnectionClosed:
            pass

    async def next_command(self, timeout: float = 2.0) -> dict[str, Any]:
        return await asyncio.wait_for(self.received.get(), timeout)

    async def send_raw(self, text: str) -> None:
        await asyncio.wait_for(self._connected.wait(), 2.0)
        assert self._connection is not None
        await self._connection.send(text)

    async def send(self, payload: Any) -> None:
        await self.send_raw(json.dumps(payload))

    async def reply(self, command: dict[str, Any], result: Any = None) -> None:
        await self.send({"id": command["id"], "result": {} if result is None else result})

    async def drop(self) -> None:
        await asyncio.wait_for(self._connected.wait(), 2.0)
        assert self._connection is not None
        await self._connection.close()


async def wait_until(condition, timeout: float = 2.0) -> None:
    """Poll ``condition`` until it is truthy."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not condition():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
async def cdp_server():
    server = FakeCDPServer()
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
async def connection(cdp_server):
    conn = await CDPConnection.open(
        cdp_server.ws_url,
        options=ConnectionOptions(command_timeout=2.0, ping_interval=None),
    )
    yield conn
    await conn.close()
