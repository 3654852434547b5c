"""
Chrome DevTools Protocol (CDP) client for mailtap.

This module provides the remote-control transport used to attach to a
running Electron mail client:
- TargetDiscovery: lists debuggable targets over HTTP
- Transport: one WebSocket per target
- RequestCorrelator: matches command responses to callers by id
- EventDispatcher: fans events out to subscriptions
- CDPConnection: domain-oriented facade over all of the above

Example usage:
    ```python
    from mailtap.cdp import connect, main_page
    from mailtap.config import MailtapConfig, ConnectionOptions

    config = MailtapConfig(connection=ConnectionOptions(port=9333))

    async with await connect(
        options=config, predicate=main_page("mail.example.com")
    ) as connection:
        await connection.enable("Network")
        connection.on("Network", "requestWillBeSent", lambda p: print(p["request"]["url"]))
        title = await connection.evaluate("document.title")
    ```
"""

from mailtap.cdp.connection import (
    CDPConnection,
    connect,
    connect_url,
)
from mailtap.cdp.correlator import (
    PendingRequest,
    RequestCorrelator,
)
from mailtap.cdp.discovery import (
    TargetDiscovery,
    all_of,
    find_target,
    get_version,
    is_attachable,
    is_page,
    list_targets,
    main_page,
    type_is,
    url_contains,
    url_excludes,
)
from mailtap.cdp.dispatcher import (
    EventDispatcher,
    Subscription,
)
from mailtap.cdp.transport import (
    Transport,
    TransportState,
)

__all__ = [
    # Connection
    "CDPConnection",
    "connect",
    "connect_url",
    # Correlation
    "PendingRequest",
    "RequestCorrelator",
    # Discovery
    "TargetDiscovery",
    "all_of",
    "find_target",
    "get_version",
    "is_attachable",
    "is_page",
    "list_targets",
    "main_page",
    "type_is",
    "url_contains",
    "url_excludes",
    # Events
    "EventDispatcher",
    "Subscription",
    # Transport
    "Transport",
    "TransportState",
]
