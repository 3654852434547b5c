"""
CDP WebSocket transport.

Owns exactly one WebSocket to a target's debugger URL: serializes outgoing
frames, decodes incoming ones on a single receive loop, and reports when the
socket goes away.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from mailtap.config.defaults import (
    DEFAULT_HANDSHAKE_TIMEOUT,
    DEFAULT_MAX_MESSAGE_SIZE,
    DEFAULT_PING_INTERVAL,
    DEFAULT_PING_TIMEOUT,
)
from mailtap.errors import CDPConnectionError, ClosedError

logger = logging.getLogger(__name__)

FrameHandler = Callable[[Any], None]
CloseHandler = Callable[[str], None]


class TransportState(str, Enum):
    """Transport lifecycle. Transitions only move forward."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def _ignore_frame(frame: Any) -> None:
    pass


def _ignore_close(reason: str) -> None:
    pass


class Transport:
    """One WebSocket connection to a CDP target.

    ``on_frame`` receives every decoded message and ``on_close`` is called
    exactly once with the reason the transport closed. Both run on the
    receive loop and must not block.

    Example:
        transport = Transport(ws_url, on_frame=print)
        await transport.open()
        await transport.send('{"id": 1, "method": "Browser.getVersion", "params": {}}')
        await transport.close()
    """

    def __init__(
        self,
        ws_url: str,
        *,
        on_frame: FrameHandler = _ignore_frame,
        on_close: CloseHandler = _ignore_close,
        max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
        ping_interval: Optional[float] = DEFAULT_PING_INTERVAL,
        ping_timeout: Optional[float] = DEFAULT_PING_TIMEOUT,
    ) -> None:
        self._ws_url = ws_url
        self._on_frame = on_frame
        self._on_close = on_close
        self._max_message_size = max_message_size
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._ws: Optional[ClientConnection] = None
        self._state = TransportState.CONNECTING
        self._close_reason: Optional[str] = None
        self._send_lock = asyncio.Lock()
        self._receive_task: Optional[asyncio.Task[None]] = None
        self._opening: Optional[asyncio.Future[None]] = None

    @property
    def ws_url(self) -> str:
        return self._ws_url

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is TransportState.OPEN

    @property
    def close_reason(self) -> Optional[str]:
        return self._close_reason

    async def open(self, handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT) -> None:
        """Perform the WebSocket handshake and start the receive loop.

        Raises:
            CDPConnectionError: If the handshake fails or does not complete
                within ``handshake_timeout`` seconds.
            ClosedError: If this transport was already closed, or is closed
                while the handshake is in flight.
        """
        if self._state is TransportState.OPEN:
            return
        if self._state is TransportState.CLOSED:
            raise ClosedError("Transport was closed and cannot be reused")

        # Concurrent callers share one handshake.
        if self._opening is None:
            self._opening = asyncio.ensure_future(self._handshake(handshake_timeout))
        await self._opening

    async def _handshake(self, handshake_timeout: float) -> None:
        logger.debug(f"Connecting to CDP: {self._ws_url}")
        try:
            ws = await asyncio.wait_for(
                connect(
                    self._ws_url,
                    open_timeout=None,
                    max_size=self._max_message_size,
                    ping_interval=self._ping_interval,
                    ping_timeout=self._ping_timeout,
                ),
                timeout=handshake_timeout,
            )
        except asyncio.TimeoutError as e:
            self._finish(f"handshake timed out after {handshake_timeout}s")
            raise CDPConnectionError(
                f"Handshake with {self._ws_url} timed out after {handshake_timeout}s"
            ) from e
        except (OSError, WebSocketException) as e:
            self._finish(f"handshake failed: {e}")
            raise CDPConnectionError(f"Could not connect to {self._ws_url}: {e}") from e

        if self._state is TransportState.CLOSED:
            # close() ran while the handshake was in flight
            await ws.close()
            raise ClosedError(self._close_reason or "Transport closed during handshake")

        self._ws = ws
        self._state = TransportState.OPEN
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.debug("CDP connection established")

    async def send(self, frame: str) -> None:
        """Send one text frame.

        Concurrent callers are serialized so frames never interleave.

        Raises:
            ClosedError: If the transport is not open or the socket drops.
        """
        async with self._send_lock:
            if self._state is not TransportState.OPEN or self._ws is None:
                raise ClosedError(self._close_reason or "Transport is not open")
            try:
                await self._ws.send(frame)
            except ConnectionClosed as e:
                self._finish(f"connection lost: {e}")
                raise ClosedError(self._close_reason or "connection lost") from e

    async def close(self) -> None:
        """Close the socket and stop the receive loop. Safe to call twice."""
        self._finish("closed by client")

        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass

        if self._ws is not None:
            await self._ws.close()

        logger.debug("CDP connection closed")

    def _finish(self, reason: str) -> None:
        if self._state is TransportState.CLOSED:
            return
        self._state = TransportState.CLOSED
        self._close_reason = reason
        logger.debug(f"CDP transport closed: {reason}")
        try:
            self._on_close(reason)
        except Exception as e:
            logger.exception(f"Error in CDP close handler: {e}")

    async def _receive_loop(self) -> None:
        """Decode frames one at a time until the socket closes."""
        assert self._ws is not None
        reason = "connection closed by remote"

        try:
            async for message in self._ws:
                try:
                    frame = json.loads(message)
                except ValueError:
                    logger.warning(f"Invalid JSON from CDP: {str(message)[:100]}")
                    reason = "malformed frame"
                    break

                try:
                    self._on_frame(frame)
                except Exception as e:
                    logger.exception(f"Error handling CDP frame: {e}")

        except ConnectionClosed as e:
            reason = f"connection lost: {e}"
        finally:
            self._finish(reason)

        await self._ws.close()


__all__ = ["Transport", "TransportState"]
