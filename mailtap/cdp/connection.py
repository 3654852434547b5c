"""
CDP connection handler.

Binds one Transport, RequestCorrelator and EventDispatcher to a single
target, and exposes the domain-oriented API the rest of the code base uses:
``invoke``, ``on``, ``enable``/``disable`` and ``close``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from mailtap.cdp.correlator import DEFAULT, RequestCorrelator
from mailtap.cdp.discovery import TargetPredicate, find_target, list_targets, main_page
from mailtap.cdp.dispatcher import ErrorHandler, EventCallback, EventDispatcher, Subscription
from mailtap.cdp.transport import Transport, TransportState
from mailtap.config.options import ConnectionOptions, MailtapConfig, TargetOptions
from mailtap.errors import (
    ClosedError,
    EvaluationError,
    EventTimeoutError,
    TargetNotFoundError,
)
from mailtap.models import Target

logger = logging.getLogger(__name__)


class CDPConnection:
    """A live CDP session with one target.

    Example:
        connection = await CDPConnection.open(target.web_socket_debugger_url)
        await connection.enable("Network")
        sub = connection.on("Network", "responseReceived", handle_response)
        value = await connection.evaluate("document.title")
        await connection.close()
    """

    def __init__(
        self,
        ws_url: str,
        *,
        options: Optional[ConnectionOptions] = None,
        target: Optional[Target] = None,
    ) -> None:
        """Initialize CDP connection. Use ``open()`` to also connect.

        Args:
            ws_url: WebSocket debugger URL of the target.
            options: Timeouts and socket limits.
            target: Discovered target this connection is bound to, if known.
        """
        self._options = options or ConnectionOptions()
        self._target = target
        self._transport = Transport(
            ws_url,
            on_frame=self._handle_frame,
            on_close=self._handle_close,
            max_message_size=self._options.max_message_size,
            ping_interval=self._options.ping_interval,
            ping_timeout=self._options.ping_timeout,
        )
        self._correlator = RequestCorrelator(
            self._transport.send,
            default_timeout=self._options.command_timeout,
        )
        self._dispatcher = EventDispatcher()
        self._waiters: set[asyncio.Future[Any]] = set()

    @classmethod
    async def open(
        cls,
        ws_url: str,
        *,
        options: Optional[ConnectionOptions] = None,
        target: Optional[Target] = None,
    ) -> "CDPConnection":
        """Create a connection and complete the WebSocket handshake.

        Raises:
            CDPConnectionError: If the handshake fails or times out.
        """
        connection = cls(ws_url, options=options, target=target)
        await connection.connect()
        return connection

    @property
    def ws_url(self) -> str:
        return self._transport.ws_url

    @property
    def target(self) -> Optional[Target]:
        return self._target

    @property
    def state(self) -> TransportState:
        return self._transport.state

    @property
    def is_connected(self) -> bool:
        return self._transport.is_open

    @property
    def is_closed(self) -> bool:
        return self._transport.state is TransportState.CLOSED

    async def connect(self) -> None:
        """Establish WebSocket connection to the target."""
        await self._transport.open(self._options.handshake_timeout)

    async def close(self) -> None:
        """Close the connection, rejecting anything still pending."""
        await self._transport.close()

    # =========================================================================
    # Commands
    # =========================================================================

    async def send(
        self,
        method: str,
        params: Optional[dict[str, Any]] = None,
        *,
        timeout: Optional[float] = DEFAULT,
    ) -> Any:
        """Send a CDP command by full name and wait for its result.

        Args:
            method: CDP method name (e.g., "Page.navigate").
            params: Optional parameters for the method.
            timeout: Seconds to wait; None waits indefinitely; omitted uses
                the configured command timeout.

        Returns:
            The result from the CDP response.

        Raises:
            ProtocolError: If the CDP command returns an error.
            CommandTimeoutError: If the command times out.
            ClosedError: If the connection is closed.
        """
        return await self._correlator.issue(method, params, timeout)

    async def invoke(
        self,
        domain: str,
        method: str,
        params: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = DEFAULT,
    ) -> Any:
        """Send ``{domain}.{method}`` and wait for its result."""
        return await self._correlator.issue(f"{domain}.{method}", params, timeout)

    async def enable(self, domain: str, **params: Any) -> Any:
        """Enable a domain so it starts emitting events."""
        return await self.invoke(domain, "enable", params)

    async def disable(self, domain: str) -> Any:
        return await self.invoke(domain, "disable", {})

    async def evaluate(
        self,
        expression: str,
        *,
        await_promise: bool = False,
        timeout: Optional[float] = DEFAULT,
    ) -> Any:
        """Evaluate a JavaScript expression in the page and return its value.

        Args:
            expression: JavaScript source to evaluate.
            await_promise: Wait for a returned promise to settle.
            timeout: Command timeout.

        Returns:
            The JSON-serializable value of the expression.

        Raises:
            EvaluationError: If the expression threw inside the page.
        """
        result = await self.invoke(
            "Runtime",
            "evaluate",
            {
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": await_promise,
            },
            timeout,
        )
        details = result.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            text = exception.get("description") or details.get("text") or "Evaluation failed"
            raise EvaluationError(text, details)
        return result.get("result", {}).get("value")

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, domain: str, event: str, callback: EventCallback) -> Subscription:
        """Register a handler for ``{domain}.{event}``.

        Args:
            domain: CDP domain (e.g., "Network").
            event: Event name within the domain (e.g., "requestWillBeSent").
            callback: Sync or async callable receiving the event params.

        Returns:
            Subscription handle; call ``unsubscribe()`` or pass it to ``off``.
        """
        return self._dispatcher.subscribe(f"{domain}.{event}", callback)

    def off(self, subscription: Subscription) -> None:
        self._dispatcher.unsubscribe(subscription)

    def on_listener_error(self, handler: Optional[ErrorHandler]) -> None:
        """Install the hook that receives errors raised by event handlers."""
        self._dispatcher.set_error_handler(handler)

    async def wait_for_event(
        self,
        domain: str,
        event: str,
        predicate: Optional[Callable[[Any], bool]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Wait for the next ``{domain}.{event}`` whose params match ``predicate``.

        Returns:
            The params of the matching event.

        Raises:
            EventTimeoutError: If no matching event arrives in time.
            ClosedError: If the connection closes first.
        """
        method = f"{domain}.{event}"
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def handler(params: Any) -> None:
            if future.done():
                return
            if predicate is not None and not predicate(params):
                return
            future.set_result(params)

        subscription = self._dispatcher.subscribe(method, handler)
        self._waiters.add(future)
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise EventTimeoutError(method, timeout) from e
        finally:
            self._waiters.discard(future)
            subscription.unsubscribe()

    # =========================================================================
    # Frame routing
    # =========================================================================

    def _handle_frame(self, frame: Any) -> None:
        """Route one decoded frame to the correlator or the dispatcher."""
        if not isinstance(frame, dict):
            logger.warning(f"Discarding non-object CDP frame: {str(frame)[:100]}")
            return

        has_method = isinstance(frame.get("method"), str)

        if "id" in frame and (frame["id"] in self._correlator or not has_method):
            self._correlator.on_frame(frame)
        elif has_method:
            self._dispatcher.dispatch(frame)
        else:
            logger.warning(f"Discarding CDP frame without id or method: {str(frame)[:100]}")

    def _handle_close(self, reason: str) -> None:
        self._correlator.close(reason)
        self._dispatcher.close()
        for future in list(self._waiters):
            if not future.done():
                future.set_exception(ClosedError(reason))
        self._waiters.clear()

    async def __aenter__(self) -> "CDPConnection":
        if self._transport.state is TransportState.CONNECTING:
            await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def _target_predicate(options: TargetOptions) -> TargetPredicate:
    return main_page(
        options.url_contains,
        exclude=options.exclude_url_contains,
        target_type=options.target_type,
    )


async def connect(
    host: Optional[str] = None,
    port: Optional[int] = None,
    options: Optional[MailtapConfig] = None,
    *,
    predicate: Optional[TargetPredicate] = None,
) -> CDPConnection:
    """Discover a target on ``host:port`` and open a connection to it.

    Args:
        host: Debugging host, defaults to ``options.connection.host``.
        port: Debugging port, defaults to ``options.connection.port``.
        options: Connection and target-selection configuration.
        predicate: Target filter; overrides ``options.target``. Targets
            without a WebSocket debugger URL are never selected.

    Returns:
        An open CDPConnection.

    Raises:
        DiscoveryError: If listing targets fails.
        TargetNotFoundError: If no attachable target matches.
        CDPConnectionError: If the WebSocket handshake fails.
    """
    config = options or MailtapConfig()
    connection_options = config.connection
    host = host if host is not None else connection_options.host
    port = port if port is not None else connection_options.port

    targets = await list_targets(
        host, port, timeout=connection_options.discovery_timeout
    )

    selector = predicate or _target_predicate(config.target)
    target = find_target(targets, lambda t: t.is_attachable and selector(t))
    if target is None or target.web_socket_debugger_url is None:
        raise TargetNotFoundError(
            f"No attachable target matched on {host}:{port} ({len(targets)} listed)"
        )

    logger.debug(f"Attaching to target {target.id}: {target.title} ({target.url})")
    return await CDPConnection.open(
        target.web_socket_debugger_url,
        options=connection_options,
        target=target,
    )


async def connect_url(
    ws_url: str,
    options: Optional[MailtapConfig] = None,
) -> CDPConnection:
    """Open a connection to a known WebSocket debugger URL."""
    config = options or MailtapConfig()
    return await CDPConnection.open(ws_url, options=config.connection)


__all__ = ["CDPConnection", "connect", "connect_url"]
