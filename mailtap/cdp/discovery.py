"""
Target discovery over the DevTools HTTP endpoint.

The debugging host lists its attachable contexts at ``/json``. Each call
performs a single GET; there are no retries and no caching, so callers that
need a fresh view simply call again.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

import httpx
from pydantic import ValidationError

from mailtap.config.defaults import DEFAULT_DISCOVERY_TIMEOUT, DEFAULT_HOST, DEFAULT_PORT
from mailtap.errors import DiscoveryError
from mailtap.models import BrowserVersion, Target

logger = logging.getLogger(__name__)

TargetPredicate = Callable[[Target], bool]


async def _get_json(
    url: str,
    *,
    timeout: float,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """GET ``url`` and decode the JSON body, mapping every failure to DiscoveryError."""
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient() as owned:
                response = await owned.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        raise DiscoveryError(f"Could not reach DevTools endpoint {url}: {e}") from e

    if not response.is_success:
        raise DiscoveryError(
            f"DevTools endpoint {url} returned HTTP {response.status_code}"
        )

    try:
        return response.json()
    except ValueError as e:
        raise DiscoveryError(f"DevTools endpoint {url} returned malformed JSON") from e


async def list_targets(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> list[Target]:
    """List debuggable targets on ``host:port``.

    Args:
        host: Debugging host.
        port: Debugging port.
        timeout: HTTP timeout in seconds.
        client: Optional shared httpx client.

    Returns:
        Targets in the order the host listed them.

    Raises:
        DiscoveryError: On network failure, non-2xx status or a body that is
            not a JSON array of target objects.
    """
    url = f"http://{host}:{port}/json"
    data = await _get_json(url, timeout=timeout, client=client)

    if not isinstance(data, list):
        raise DiscoveryError(f"Expected a JSON array from {url}, got {type(data).__name__}")

    try:
        targets = [Target.model_validate(item) for item in data]
    except ValidationError as e:
        raise DiscoveryError(f"Malformed target entry from {url}: {e}") from e

    logger.debug(f"Discovered {len(targets)} targets at {url}")
    return targets


async def get_version(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    *,
    timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> BrowserVersion:
    """Fetch browser metadata from ``/json/version``."""
    url = f"http://{host}:{port}/json/version"
    data = await _get_json(url, timeout=timeout, client=client)

    if not isinstance(data, dict):
        raise DiscoveryError(f"Expected a JSON object from {url}, got {type(data).__name__}")

    try:
        return BrowserVersion.model_validate(data)
    except ValidationError as e:
        raise DiscoveryError(f"Malformed version info from {url}: {e}") from e


def find_target(
    targets: Iterable[Target],
    predicate: TargetPredicate,
) -> Optional[Target]:
    """Return the first target matching ``predicate``, or None."""
    for target in targets:
        if predicate(target):
            return target
    return None


# =============================================================================
# Predicates
# =============================================================================


def is_attachable(target: Target) -> bool:
    return target.is_attachable


def is_page(target: Target) -> bool:
    return target.is_page


def url_contains(fragment: str) -> TargetPredicate:
    """Match targets whose URL contains ``fragment``."""
    return lambda target: fragment in target.url


def url_excludes(*fragments: str) -> TargetPredicate:
    """Match targets whose URL contains none of ``fragments``."""
    return lambda target: not any(f in target.url for f in fragments)


def type_is(target_type: str) -> TargetPredicate:
    return lambda target: target.type == target_type


def all_of(*predicates: TargetPredicate) -> TargetPredicate:
    """Combine predicates; an empty combination matches everything."""
    return lambda target: all(p(target) for p in predicates)


def main_page(
    fragment: Optional[str] = None,
    exclude: Iterable[str] = ("background",),
    target_type: Optional[str] = None,
) -> TargetPredicate:
    """Select an app's main window rather than its background page.

    Args:
        fragment: Substring the URL must contain, if any.
        exclude: URL substrings that disqualify a target.
        target_type: Required target type, if any.

    Returns:
        Predicate that also requires a WebSocket debugger URL.
    """
    predicates: list[TargetPredicate] = [is_attachable]
    if fragment:
        predicates.append(url_contains(fragment))
    exclude = tuple(exclude)
    if exclude:
        predicates.append(url_excludes(*exclude))
    if target_type:
        predicates.append(type_is(target_type))
    return all_of(*predicates)


class TargetDiscovery:
    """Discovery client bound to one debugging host.

    Example:
        discovery = TargetDiscovery("localhost", 9333)
        target = await discovery.find_target(main_page("mail.example.com"))
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self._client = client

    async def list_targets(self) -> list[Target]:
        return await list_targets(
            self.host, self.port, timeout=self.timeout, client=self._client
        )

    async def find_target(self, predicate: TargetPredicate) -> Optional[Target]:
        """Fetch the current targets and return the first match, or None."""
        return find_target(await self.list_targets(), predicate)

    async def get_version(self) -> BrowserVersion:
        return await get_version(
            self.host, self.port, timeout=self.timeout, client=self._client
        )


__all__ = [
    "TargetDiscovery",
    "TargetPredicate",
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
]
