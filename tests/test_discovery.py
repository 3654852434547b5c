"""
Tests for mailtap.cdp.discovery.

The DevTools HTTP endpoint is simulated with httpx.MockTransport.
"""

import httpx
import pytest

from mailtap.cdp import (
    TargetDiscovery,
    all_of,
    find_target,
    get_version,
    is_page,
    list_targets,
    main_page,
    url_contains,
    url_excludes,
)
from mailtap.errors import DiscoveryError
from mailtap.models import Target

MAIN_PAGE = {
    "id": "A1",
    "title": "Inbox",
    "type": "page",
    "url": "https://mail.example.com/x",
    "webSocketDebuggerUrl": "ws://localhost:9333/devtools/page/A1",
    "devtoolsFrontendUrl": "/devtools/inspector.html?ws=localhost:9333/devtools/page/A1",
}

BACKGROUND_PAGE = {
    "id": "B2",
    "title": "background",
    "type": "other",
    "url": "https://mail.example.com/background_page",
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def json_handler(payload, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return handler


class TestListTargets:
    """Tests for list_targets."""

    @pytest.mark.asyncio
    async def test_parses_targets(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json=[MAIN_PAGE, BACKGROUND_PAGE])

        async with mock_client(handler) as client:
            targets = await list_targets("localhost", 9333, client=client)

        assert paths == ["/json"]
        assert [t.id for t in targets] == ["A1", "B2"]
        assert targets[0].web_socket_debugger_url == MAIN_PAGE["webSocketDebuggerUrl"]
        assert targets[0].is_attachable
        assert targets[0].is_page
        assert not targets[1].is_attachable
        assert targets[1].type == "other"

    @pytest.mark.asyncio
    async def test_unknown_fields_ignored(self):
        payload = [dict(MAIN_PAGE, faviconUrl="https://mail.example.com/icon.png")]
        async with mock_client(json_handler(payload)) as client:
            targets = await list_targets(client=client)
        assert targets[0].id == "A1"

    @pytest.mark.asyncio
    async def test_targets_are_immutable(self):
        async with mock_client(json_handler([MAIN_PAGE])) as client:
            targets = await list_targets(client=client)
        with pytest.raises(Exception):
            targets[0].url = "https://elsewhere"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        async with mock_client(json_handler({"error": "nope"}, status=500)) as client:
            with pytest.raises(DiscoveryError, match="500"):
                await list_targets(client=client)

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>not json</html>")

        async with mock_client(handler) as client:
            with pytest.raises(DiscoveryError, match="malformed JSON"):
                await list_targets(client=client)

    @pytest.mark.asyncio
    async def test_non_array_body(self):
        async with mock_client(json_handler({"targets": []})) as client:
            with pytest.raises(DiscoveryError, match="JSON array"):
                await list_targets(client=client)

    @pytest.mark.asyncio
    async def test_entry_without_id(self):
        async with mock_client(json_handler([{"title": "no id"}])) as client:
            with pytest.raises(DiscoveryError):
                await list_targets(client=client)

    @pytest.mark.asyncio
    async def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(DiscoveryError, match="Could not reach"):
                await list_targets(client=client)


class TestGetVersion:
    """Tests for get_version."""

    @pytest.mark.asyncio
    async def test_parses_version(self):
        payload = {
            "Browser": "Chrome/120.0.6099.109",
            "Protocol-Version": "1.3",
            "User-Agent": "Mozilla/5.0",
            "V8-Version": "12.0.267.8",
            "WebKit-Version": "537.36",
            "webSocketDebuggerUrl": "ws://localhost:9333/devtools/browser/xyz",
        }
        async with mock_client(json_handler(payload)) as client:
            version = await get_version("localhost", 9333, client=client)

        assert version.browser.startswith("Chrome/")
        assert version.protocol_version == "1.3"
        assert version.web_socket_debugger_url.endswith("/browser/xyz")

    @pytest.mark.asyncio
    async def test_array_body_rejected(self):
        async with mock_client(json_handler([])) as client:
            with pytest.raises(DiscoveryError):
                await get_version(client=client)


class TestFilters:
    """Tests for target predicates and find_target."""

    @pytest.fixture
    def targets(self):
        return [Target.model_validate(MAIN_PAGE), Target.model_validate(BACKGROUND_PAGE)]

    def test_main_page_not_background(self, targets):
        """Test the main window is chosen over the background page."""
        target = find_target(targets, main_page("mail.example.com"))
        assert target is not None
        assert target.id == "A1"

    def test_main_page_requires_debugger_url(self, targets):
        only_background = [targets[1]]
        assert find_target(only_background, main_page("mail.example.com", exclude=())) is None

    def test_not_found_returns_none(self, targets):
        assert find_target(targets, url_contains("calendar.example.com")) is None
        assert find_target([], lambda t: True) is None

    def test_first_match_wins(self, targets):
        assert find_target(targets, url_contains("mail.example.com")).id == "A1"

    def test_combinators(self, targets):
        predicate = all_of(is_page, url_excludes("background"))
        assert [t.id for t in targets if predicate(t)] == ["A1"]
        assert all_of()(targets[1])

    def test_target_type_filter(self, targets):
        assert find_target(targets, main_page(target_type="other")) is None
        assert find_target(targets, main_page(target_type="page")).id == "A1"


class TestTargetDiscovery:
    """Tests for the TargetDiscovery client."""

    @pytest.mark.asyncio
    async def test_find_target_fetches_fresh(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json=[BACKGROUND_PAGE, MAIN_PAGE])

        async with mock_client(handler) as client:
            discovery = TargetDiscovery("localhost", 9333, client=client)
            first = await discovery.find_target(main_page("mail.example.com"))
            second = await discovery.find_target(main_page("mail.example.com"))

        assert first.id == second.id == "A1"
        assert calls == ["/json", "/json"]

    @pytest.mark.asyncio
    async def test_find_target_none(self):
        async with mock_client(json_handler([BACKGROUND_PAGE])) as client:
            discovery = TargetDiscovery(client=client)
            assert await discovery.find_target(main_page()) is None
