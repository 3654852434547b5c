"""
CDP event fan-out.

Routes unsolicited ``{"method", "params"}`` frames to every subscription
registered for that method. Each subscription drains its own queue on its
own task, so a slow listener never holds up the receive loop or the other
listeners, and a listener always sees events in wire order.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from mailtap.errors import ClosedError, ListenerError

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], Any]
ErrorHandler = Callable[[ListenerError], None]

_STOP = object()


class Subscription:
    """Handle for one ``(method, callback)`` registration.

    Events already selected for this subscription are still delivered
    after ``unsubscribe()``; nothing selected afterwards is.
    """

    def __init__(
        self,
        dispatcher: "EventDispatcher",
        method: str,
        callback: EventCallback,
    ) -> None:
        self._dispatcher = dispatcher
        self.method = method
        self.callback = callback
        self._active = True
        self._queue: Optional[asyncio.Queue[Any]] = None
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        self._dispatcher.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *args: Any) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self._active else "stopped"
        return f"<Subscription {self.method} {state}>"

    def _deliver(self, params: Any) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
            self._task = asyncio.get_running_loop().create_task(self._run())
        self._queue.put_nowait(params)

    def _stop(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._queue is not None:
            self._queue.put_nowait(_STOP)

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            params = await self._queue.get()
            if params is _STOP:
                break
            try:
                result = self.callback(params)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._dispatcher._report(self, e)


class EventDispatcher:
    """Fan-out of CDP events to subscriptions, keyed by method name.

    Example:
        dispatcher = EventDispatcher()
        sub = dispatcher.subscribe("Network.requestWillBeSent", print)
        dispatcher.dispatch({"method": "Network.requestWillBeSent", "params": {...}})
        sub.unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Subscription]] = {}
        self._error_handler: Optional[ErrorHandler] = None
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def subscribe(self, method: str, callback: EventCallback) -> Subscription:
        """Register ``callback`` for events named ``method``.

        Args:
            method: Full event name (e.g., "Network.responseReceived").
            callback: Sync or async callable receiving the event params.

        Returns:
            Subscription handle.

        Raises:
            ClosedError: If the dispatcher has been closed.
        """
        if self._closed:
            raise ClosedError("Cannot subscribe on a closed connection")

        subscription = Subscription(self, method, callback)
        self._listeners.setdefault(method, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown or already removed handles are ignored."""
        listeners = self._listeners.get(subscription.method)
        if listeners is not None:
            self._listeners[subscription.method] = [
                s for s in listeners if s is not subscription
            ]
            if not self._listeners[subscription.method]:
                del self._listeners[subscription.method]
        subscription._stop()

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        """Set the hook that receives ListenerError for failing callbacks.

        Args:
            handler: Callable receiving the ListenerError, or None to fall
                back to logging.
        """
        self._error_handler = handler

    def dispatch(self, frame: dict[str, Any]) -> int:
        """Queue an event frame for every current listener of its method.

        Returns:
            Number of listeners the event was handed to.
        """
        method = frame.get("method")
        params = frame.get("params", {})
        snapshot = tuple(self._listeners.get(method, ()))  # type: ignore[arg-type]

        for subscription in snapshot:
            subscription._deliver(params)

        return len(snapshot)

    def listener_count(self, method: str) -> int:
        return len(self._listeners.get(method, ()))

    def event_names(self) -> list[str]:
        return list(self._listeners.keys())

    def close(self) -> None:
        """Stop every subscription and refuse new ones."""
        self._closed = True
        listeners = self._listeners
        self._listeners = {}
        for subscriptions in listeners.values():
            for subscription in subscriptions:
                subscription._stop()

    def _report(self, subscription: Subscription, exc: Exception) -> None:
        error = ListenerError(subscription.method, exc)
        if self._error_handler is None:
            logger.error(f"Error in CDP event handler for {subscription.method}: {exc}", exc_info=exc)
            return
        try:
            self._error_handler(error)
        except Exception as e:
            logger.exception(f"Error in CDP listener error handler: {e}")


__all__ = ["ErrorHandler", "EventCallback", "EventDispatcher", "Subscription"]
