"""
mailtap: remote control for a running desktop mail client over CDP.

Attaches to an Electron app started with ``--remote-debugging-port``,
issues Chrome DevTools Protocol commands and listens to its events.

Basic usage:
    from mailtap import connect, main_page

    connection = await connect("localhost", 9333, predicate=main_page("mail.example.com"))
    await connection.enable("Network")
    sub = connection.on("Network", "responseReceived", lambda p: print(p["response"]["url"]))

    drafts = await connection.evaluate("JSON.stringify(window.__drafts || [])")
    await connection.close()

Error handling:
    from mailtap import CommandTimeoutError, ProtocolError, ClosedError

    try:
        await connection.invoke("Runtime", "evaluate", {"expression": "1"}, timeout=2.0)
    except CommandTimeoutError as e:
        print(f"{e.method} got no answer")
    except ProtocolError as e:
        print(f"rejected: {e.code} {e.message}")
"""

__version__ = "0.1.0"
__license__ = "MIT"

from mailtap.cdp import (
    CDPConnection,
    EventDispatcher,
    RequestCorrelator,
    Subscription,
    TargetDiscovery,
    Transport,
    TransportState,
    connect,
    connect_url,
    find_target,
    get_version,
    list_targets,
    main_page,
)
from mailtap.config import (
    ConfigurationError,
    ConnectionOptions,
    MailtapConfig,
    TargetOptions,
    load_config,
)
from mailtap.errors import (
    CDPConnectionError,
    CDPError,
    CDPTimeoutError,
    ClosedError,
    CommandTimeoutError,
    DiscoveryError,
    EvaluationError,
    EventTimeoutError,
    ListenerError,
    ProtocolError,
    TargetNotFoundError,
)
from mailtap.models import BrowserVersion, Target

__all__ = [
    "__version__",
    # Connection
    "CDPConnection",
    "EventDispatcher",
    "RequestCorrelator",
    "Subscription",
    "Transport",
    "TransportState",
    "connect",
    "connect_url",
    # Discovery
    "BrowserVersion",
    "Target",
    "TargetDiscovery",
    "find_target",
    "get_version",
    "list_targets",
    "main_page",
    # Configuration
    "ConfigurationError",
    "ConnectionOptions",
    "MailtapConfig",
    "TargetOptions",
    "load_config",
    # Errors
    "CDPConnectionError",
    "CDPError",
    "CDPTimeoutError",
    "ClosedError",
    "CommandTimeoutError",
    "DiscoveryError",
    "EvaluationError",
    "EventTimeoutError",
    "ListenerError",
    "ProtocolError",
    "TargetNotFoundError",
]
