"""
Command/response correlation for CDP.

Every command gets a fresh numeric id and a pending entry. The entry is
settled exactly once: by the matching response, by its deadline, or by
connection teardown.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from mailtap.config.defaults import DEFAULT_COMMAND_TIMEOUT
from mailtap.errors import (
    CDPError,
    ClosedError,
    CommandTimeoutError,
    ProtocolError,
)

logger = logging.getLogger(__name__)

SendFunc = Callable[[str], Awaitable[None]]

# Sentinel for "use the correlator's default timeout"; None means wait forever.
DEFAULT: Any = object()


@dataclass
class PendingRequest:
    """An in-flight command awaiting its response."""

    id: int
    method: str
    future: asyncio.Future[Any]
    timeout: Optional[float] = None
    timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class RequestCorrelator:
    """Assigns command ids and routes responses back to their callers.

    All state is owned by the event loop thread; no check-then-mutate
    sequence spans an ``await``, so concurrent ``issue`` calls and the
    receive loop cannot interleave inside one.

    Example:
        correlator = RequestCorrelator(transport.send)
        result = await correlator.issue("Network.enable", {}, timeout=5.0)
    """

    def __init__(
        self,
        send: SendFunc,
        *,
        default_timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT,
    ) -> None:
        """Initialize the correlator.

        Args:
            send: Coroutine function that writes one serialized frame.
            default_timeout: Timeout used when ``issue`` is not given one.
                None waits indefinitely.
        """
        self._send = send
        self._default_timeout = default_timeout
        self._ids = itertools.count(1)
        self._last_id = 0
        self._pending: dict[int, PendingRequest] = {}
        self._closed = False
        self._close_reason: Optional[str] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def last_id(self) -> int:
        """The most recently allocated id, 0 if none yet."""
        return self._last_id

    @property
    def is_closed(self) -> bool:
        return self._closed

    def __contains__(self, request_id: object) -> bool:
        return type(request_id) is int and request_id in self._pending

    async def issue(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = DEFAULT,
    ) -> Any:
        """Send a command and wait for its result.

        Args:
            method: Full CDP method name (e.g., "Runtime.evaluate").
            params: Command parameters, sent as ``{}`` when omitted.
            timeout: Seconds to wait, None for no deadline.

        Returns:
            The decoded ``result`` of the response.

        Raises:
            ProtocolError: If the response carries an ``error``.
            CommandTimeoutError: If no response arrives in time.
            ClosedError: If the connection is or becomes closed.
        """
        if self._closed:
            raise ClosedError(self._close_reason or "Connection is closed")

        if timeout is DEFAULT:
            timeout = self._default_timeout

        request_id = next(self._ids)
        self._last_id = request_id

        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            id=request_id,
            method=method,
            future=loop.create_future(),
            timeout=timeout,
        )
        self._pending[request_id] = pending
        if timeout is not None:
            pending.timer = loop.call_later(timeout, self._expire, request_id)

        message = {"id": request_id, "method": method, "params": params or {}}

        try:
            await self._send(json.dumps(message))
            logger.debug(f"CDP send: {method} (id={request_id})")
        except CDPError as e:
            self._reject(request_id, e)
        except BaseException:
            self._discard(request_id)
            raise

        try:
            return await pending.future
        except asyncio.CancelledError:
            self._discard(request_id)
            raise

    def on_frame(self, frame: dict[str, Any]) -> None:
        """Settle the pending request a response frame refers to.

        Unknown ids (e.g. a response that arrives after its deadline) are
        logged and dropped.
        """
        request_id = frame.get("id")
        pending = self._pending.pop(request_id, None) if type(request_id) is int else None
        if pending is None:
            logger.debug(f"Dropping CDP response for unknown id={request_id}")
            return

        pending.cancel_timer()
        if pending.future.done():
            return

        if "error" in frame:
            error = frame["error"] if isinstance(frame["error"], dict) else {}
            pending.future.set_exception(
                ProtocolError(
                    error.get("code", -1),
                    error.get("message", "Unknown error"),
                    error.get("data"),
                )
            )
        else:
            pending.future.set_result(frame.get("result", {}))

    def close(self, reason: str = "Connection closed") -> None:
        """Reject every pending request with ClosedError, in id order."""
        self._closed = True
        self._close_reason = reason

        pending = sorted(self._pending.values(), key=lambda p: p.id)
        self._pending.clear()

        for entry in pending:
            entry.cancel_timer()
            if not entry.future.done():
                entry.future.set_exception(ClosedError(reason))

        if pending:
            logger.debug(f"Rejected {len(pending)} pending CDP requests: {reason}")

    def _expire(self, request_id: int) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            return
        pending.timer = None
        logger.debug(f"CDP request timed out: {pending.method} (id={request_id})")
        pending.future.set_exception(
            CommandTimeoutError(request_id, pending.method, pending.timeout)
        )

    def _reject(self, request_id: int, error: BaseException) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        pending.cancel_timer()
        if not pending.future.done():
            pending.future.set_exception(error)

    def _discard(self, request_id: int) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            pending.cancel_timer()
            pending.future.cancel()


__all__ = ["DEFAULT", "PendingRequest", "RequestCorrelator", "SendFunc"]
