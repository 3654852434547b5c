"""
Error types for mailtap.

Every error raised by the CDP client derives from CDPError so callers can
catch the whole family, or branch on the specific subclass (timeout vs.
protocol vs. closed).
"""

from __future__ import annotations

from typing import Any, Optional


class CDPError(Exception):
    """Base class for all mailtap CDP errors."""


class DiscoveryError(CDPError):
    """Listing targets over the HTTP discovery endpoint failed."""


class TargetNotFoundError(DiscoveryError):
    """No discovered target matched the requested filter."""


class CDPConnectionError(CDPError, ConnectionError):
    """The WebSocket handshake failed or did not complete in time."""


class ProtocolError(CDPError):
    """The remote end rejected a command with an ``error`` response."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"CDP Error {code}: {message}")


class CDPTimeoutError(CDPError, TimeoutError):
    """Base class for deadline expiry."""


class CommandTimeoutError(CDPTimeoutError):
    """No response arrived for a command before its deadline."""

    def __init__(self, id: int, method: str, timeout: Optional[float] = None) -> None:
        self.id = id
        self.method = method
        self.timeout = timeout
        super().__init__(f"Command {method} (id={id}) timed out after {timeout}s")


class EventTimeoutError(CDPTimeoutError):
    """A waited-for event did not arrive before the deadline."""

    def __init__(self, method: str, timeout: Optional[float] = None) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Event {method} not received within {timeout}s")


class ClosedError(CDPError):
    """The connection is closed, or closed while a command was in flight."""

    def __init__(self, reason: str = "connection closed") -> None:
        self.reason = reason
        super().__init__(reason)


class ListenerError(CDPError):
    """An event listener raised. Reported to the error hook, never re-raised."""

    def __init__(self, method: str, original: BaseException) -> None:
        self.method = method
        self.original = original
        super().__init__(f"Listener for {method} raised {type(original).__name__}: {original}")


class EvaluationError(CDPError):
    """``Runtime.evaluate`` reported an exception thrown inside the page."""

    def __init__(self, text: str, details: Optional[dict[str, Any]] = None) -> None:
        self.text = text
        self.details = details or {}
        super().__init__(text)


__all__ = [
    "CDPError",
    "DiscoveryError",
    "TargetNotFoundError",
    "CDPConnectionError",
    "ProtocolError",
    "CDPTimeoutError",
    "CommandTimeoutError",
    "EventTimeoutError",
    "ClosedError",
    "ListenerError",
    "EvaluationError",
]
