"""
Tests for mailtap.cdp.dispatcher.
"""

import asyncio
import logging

import pytest

from mailtap.cdp import EventDispatcher
from mailtap.errors import ClosedError, ListenerError


async def drain(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def event(method: str, **params):
    return {"method": method, "params": params}


@pytest.fixture
def dispatcher():
    d = EventDispatcher()
    yield d
    d.close()


class TestFanOut:
    """Tests for routing events to listeners."""

    @pytest.mark.asyncio
    async def test_only_matching_listeners(self, dispatcher):
        """Test each listener gets exactly its own events, in registration order."""
        calls = []
        dispatcher.subscribe("Network.requestWillBeSent", lambda p: calls.append(("a", p)))
        dispatcher.subscribe("Network.requestWillBeSent", lambda p: calls.append(("b", p)))
        dispatcher.subscribe("Network.responseReceived", lambda p: calls.append(("c", p)))

        assert dispatcher.dispatch(event("Network.requestWillBeSent", requestId="1")) == 2
        assert dispatcher.dispatch(event("Network.responseReceived", requestId="1")) == 1
        await drain()

        assert calls == [
            ("a", {"requestId": "1"}),
            ("b", {"requestId": "1"}),
            ("c", {"requestId": "1"}),
        ]

    @pytest.mark.asyncio
    async def test_no_listeners(self, dispatcher):
        assert dispatcher.dispatch(event("Page.loadEventFired")) == 0

    @pytest.mark.asyncio
    async def test_missing_params_default_to_empty(self, dispatcher):
        received = []
        dispatcher.subscribe("Page.loadEventFired", received.append)
        dispatcher.dispatch({"method": "Page.loadEventFired"})
        await drain()
        assert received == [{}]

    @pytest.mark.asyncio
    async def test_wire_order_preserved_for_async_listener(self, dispatcher):
        """Test an async listener sees events in the order they were dispatched."""
        seen = []

        async def slow(params):
            await asyncio.sleep(0.01 if params["n"] % 2 == 0 else 0)
            seen.append(params["n"])

        dispatcher.subscribe("Network.dataReceived", slow)
        for n in range(6):
            dispatcher.dispatch(event("Network.dataReceived", n=n))

        for _ in range(50):
            if len(seen) == 6:
                break
            await asyncio.sleep(0.01)
        assert seen == [0, 1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_slow_listener_does_not_block_others(self, dispatcher):
        release = asyncio.Event()
        fast_calls = []

        async def stuck(params):
            await release.wait()

        dispatcher.subscribe("Network.responseReceived", stuck)
        dispatcher.subscribe("Network.responseReceived", fast_calls.append)

        dispatcher.dispatch(event("Network.responseReceived", n=1))
        dispatcher.dispatch(event("Network.responseReceived", n=2))
        await drain()

        assert fast_calls == [{"n": 1}, {"n": 2}]
        release.set()


class TestSnapshot:
    """Tests for the listener snapshot taken at dispatch time."""

    @pytest.mark.asyncio
    async def test_listener_added_during_dispatch_skipped(self, dispatcher):
        late_calls = []

        def first(params):
            if not late_calls and dispatcher.listener_count("Runtime.consoleAPICalled") == 1:
                dispatcher.subscribe("Runtime.consoleAPICalled", late_calls.append)

        dispatcher.subscribe("Runtime.consoleAPICalled", first)

        dispatcher.dispatch(event("Runtime.consoleAPICalled", n=1))
        await drain()
        assert late_calls == []

        dispatcher.dispatch(event("Runtime.consoleAPICalled", n=2))
        await drain()
        assert late_calls == [{"n": 2}]

    @pytest.mark.asyncio
    async def test_removed_after_selection_still_receives(self, dispatcher):
        calls = []
        sub = dispatcher.subscribe("Network.loadingFinished", calls.append)

        dispatcher.dispatch(event("Network.loadingFinished", n=1))
        sub.unsubscribe()
        dispatcher.dispatch(event("Network.loadingFinished", n=2))
        await drain()

        assert calls == [{"n": 1}]
        assert not sub.active

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_harmless(self, dispatcher):
        sub = dispatcher.subscribe("Page.loadEventFired", lambda p: None)
        sub.unsubscribe()
        dispatcher.unsubscribe(sub)
        assert dispatcher.listener_count("Page.loadEventFired") == 0
        assert dispatcher.event_names() == []

    @pytest.mark.asyncio
    async def test_subscription_context_manager(self, dispatcher):
        calls = []
        with dispatcher.subscribe("Page.loadEventFired", calls.append):
            dispatcher.dispatch(event("Page.loadEventFired"))
        dispatcher.dispatch(event("Page.loadEventFired"))
        await drain()
        assert calls == [{}]


class TestListenerErrors:
    """Tests for listener exception isolation."""

    @pytest.mark.asyncio
    async def test_error_isolated_and_reported(self, dispatcher):
        errors = []
        calls = []

        def broken(params):
            raise ValueError("boom")

        dispatcher.set_error_handler(errors.append)
        dispatcher.subscribe("Network.requestWillBeSent", broken)
        dispatcher.subscribe("Network.requestWillBeSent", calls.append)

        dispatcher.dispatch(event("Network.requestWillBeSent", n=1))
        dispatcher.dispatch(event("Network.requestWillBeSent", n=2))
        await drain()

        assert calls == [{"n": 1}, {"n": 2}]
        assert len(errors) == 2
        assert isinstance(errors[0], ListenerError)
        assert errors[0].method == "Network.requestWillBeSent"
        assert isinstance(errors[0].original, ValueError)

    @pytest.mark.asyncio
    async def test_async_listener_error_reported(self, dispatcher):
        errors = []

        async def broken(params):
            raise RuntimeError("async boom")

        dispatcher.set_error_handler(errors.append)
        dispatcher.subscribe("Page.frameNavigated", broken)
        dispatcher.dispatch(event("Page.frameNavigated"))
        await drain()

        assert isinstance(errors[0].original, RuntimeError)

    @pytest.mark.asyncio
    async def test_error_logged_without_handler(self, dispatcher, caplog):
        def broken(params):
            raise ValueError("boom")

        dispatcher.subscribe("Page.frameNavigated", broken)
        with caplog.at_level(logging.ERROR, logger="mailtap.cdp.dispatcher"):
            dispatcher.dispatch(event("Page.frameNavigated"))
            await drain()

        assert "Page.frameNavigated" in caplog.text

    @pytest.mark.asyncio
    async def test_failing_error_handler_contained(self, dispatcher):
        calls = []

        def bad_hook(error):
            raise RuntimeError("hook failed")

        dispatcher.set_error_handler(bad_hook)
        dispatcher.subscribe("Page.frameNavigated", lambda p: 1 / 0)
        dispatcher.subscribe("Page.frameNavigated", calls.append)
        dispatcher.dispatch(event("Page.frameNavigated"))
        await drain()

        assert calls == [{}]


class TestClose:
    """Tests for dispatcher teardown."""

    @pytest.mark.asyncio
    async def test_subscribe_after_close(self):
        dispatcher = EventDispatcher()
        dispatcher.close()
        with pytest.raises(ClosedError):
            dispatcher.subscribe("Page.loadEventFired", lambda p: None)

    @pytest.mark.asyncio
    async def test_close_stops_subscriptions(self):
        dispatcher = EventDispatcher()
        calls = []
        sub = dispatcher.subscribe("Page.loadEventFired", calls.append)

        dispatcher.dispatch(event("Page.loadEventFired", n=1))
        dispatcher.close()
        dispatcher.dispatch(event("Page.loadEventFired", n=2))
        await drain()

        assert calls == [{"n": 1}]
        assert not sub.active
        assert dispatcher.listener_count("Page.loadEventFired") == 0
