"""Unit tests for Subscription and EventDispatcher.

Tests focus on delivery, backpressure and release semantics.
"""

from __future__ import annotations

import asyncio
import gc
from unittest.mock import AsyncMock, MagicMock

import pytest

from laakhay.futures.core.exceptions import SessionExpiredError, StreamError
from laakhay.futures.runtime.ws.events import EventDispatcher, StreamEvent, Subscription


def _event(channel: str = "btcusdt@trade", seq: int = 0, etype: str = "trade") -> StreamEvent:
    return StreamEvent("market-0", channel, {"e": etype, "t": seq}, epoch=1)


class TestSubscription:
    """Test Subscription delivery and lifecycle."""

    @pytest.mark.asyncio
    async def test_get_returns_events_in_order(self):
        """Test get() returns events in arrival order."""
        sub = Subscription("btcusdt@trade", "market-0")
        for i in range(3):
            sub.deliver(_event(seq=i))
        assert [(await sub.get()).data["t"] for _ in range(3)] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_full_queue_drops_oldest(self):
        """Test a full buffer drops the oldest event and counts it."""
        sub = Subscription("btcusdt@trade", "market-0", maxsize=2)
        for i in range(5):
            sub.deliver(_event(seq=i))

        assert sub.dropped == 3
        assert (await sub.get()).data["t"] == 3
        assert (await sub.get()).data["t"] == 4

    @pytest.mark.asyncio
    async def test_full_queue_keeps_queued_error(self):
        """Test overflow drops events, never a queued error."""
        sub = Subscription("userData", "user-data", maxsize=2)
        sub.fail(SessionExpiredError("expired", "user-data"))
        for i in range(4):
            sub.deliver(_event("userData", seq=i))

        assert sub.dropped == 2
        with pytest.raises(SessionExpiredError):
            await sub.get()
        assert [(await sub.get()).data["t"] for _ in range(2)] == [2, 3]

    @pytest.mark.asyncio
    async def test_event_type_filter(self):
        """Test event_types filters by the frame's event type."""
        sub = Subscription("userData", "user-data", event_types=["ORDER_TRADE_UPDATE"])
        assert sub.deliver(_event("userData", etype="ACCOUNT_UPDATE")) is False
        assert sub.deliver(_event("userData", etype="ORDER_TRADE_UPDATE")) is True
        assert sub.get_nowait().event_type == "ORDER_TRADE_UPDATE"
        assert sub.get_nowait() is None

    @pytest.mark.asyncio
    async def test_fail_raises_from_get_then_continues(self):
        """Test fail() raises from get() and later events still arrive."""
        sub = Subscription("userData", "user-data")
        sub.fail(SessionExpiredError("expired", "user-data"))
        sub.deliver(_event("userData"))

        with pytest.raises(SessionExpiredError):
            await sub.get()
        assert (await sub.get()).channel == "userData"

    @pytest.mark.asyncio
    async def test_aclose_stops_delivery_and_notifies_owner(self):
        """Test aclose() stops delivery and notifies the owner."""
        on_close = AsyncMock()
        sub = Subscription("btcusdt@trade", "market-0", on_close=on_close)
        await sub.aclose()

        assert sub.closed
        assert sub.deliver(_event()) is False
        on_close.assert_awaited_once_with(sub)
        with pytest.raises(StreamError):
            await sub.get()

    @pytest.mark.asyncio
    async def test_async_iteration_ends_on_finish(self):
        """Test async iteration drains then ends after finish()."""
        sub = Subscription("btcusdt@trade", "market-0")
        sub.deliver(_event(seq=1))
        sub.finish()
        assert [e.data["t"] async for e in sub] == [1]

    @pytest.mark.asyncio
    async def test_sync_callback_receives_events(self):
        """Test a sync callback receives events directly."""
        received = []
        sub = Subscription("btcusdt@trade", "market-0", callback=received.append)
        sub.deliver(_event(seq=9))
        assert received[0].data["t"] == 9

    @pytest.mark.asyncio
    async def test_coroutine_callback_is_scheduled(self):
        """Test a coroutine callback is scheduled as a task."""
        received = []

        async def handler(event):
            received.append(event)

        sub = Subscription("btcusdt@trade", "market-0", callback=handler)
        sub.deliver(_event())
        await asyncio.sleep(0)
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_raise(self):
        """Test a raising callback is logged, not propagated."""
        sub = Subscription("btcusdt@trade", "market-0", callback=MagicMock(side_effect=ValueError))
        assert sub.deliver(_event()) is True

    @pytest.mark.asyncio
    async def test_fail_reaches_on_error(self):
        """Test callback consumers are told about errors via on_error."""
        events, errors = [], []
        sub = Subscription(
            "userData", "user-data", callback=events.append, on_error=errors.append
        )
        error = SessionExpiredError("expired", "user-data")
        sub.fail(error)

        assert errors == [error]
        assert events == []
        assert sub.pending == 0

    @pytest.mark.asyncio
    async def test_fail_reaches_callback_without_on_error(self):
        """Test a callback without on_error receives the error itself."""
        seen = []
        sub = Subscription("userData", "user-data", callback=seen.append)
        sub.deliver(_event("userData"))
        sub.fail(SessionExpiredError("expired", "user-data"))

        assert isinstance(seen[0], StreamEvent)
        assert isinstance(seen[1], SessionExpiredError)

    def test_garbage_collection_calls_release(self):
        """Test dropping the handle releases its channel."""
        release = MagicMock()
        sub = Subscription("btcusdt@trade", "market-0", on_release=release)
        sub_id = sub.id
        del sub
        gc.collect()
        release.assert_called_once_with("market-0", "btcusdt@trade", sub_id)

    def test_finish_detaches_release(self):
        """Test finish() detaches the release finalizer."""
        release = MagicMock()
        sub = Subscription("btcusdt@trade", "market-0", on_release=release)
        sub.finish()
        del sub
        gc.collect()
        release.assert_not_called()


class TestEventDispatcher:
    """Test EventDispatcher routing."""

    @pytest.mark.asyncio
    async def test_dispatch_fans_out_to_channel_subscribers(self):
        """Test dispatch reaches every subscriber on the channel only."""
        dispatcher = EventDispatcher()
        a = Subscription("btcusdt@trade", "market-0")
        b = Subscription("btcusdt@trade", "market-0")
        other = Subscription("ethusdt@trade", "market-0")
        for sub in (a, b, other):
            dispatcher.register(sub)

        assert dispatcher.dispatch(_event()) == 2
        assert a.get_nowait() is not None
        assert b.get_nowait() is not None
        assert other.get_nowait() is None

    @pytest.mark.asyncio
    async def test_dropped_handle_stops_receiving(self):
        """Test a collected handle receives nothing further."""
        dispatcher = EventDispatcher()
        sub = Subscription("btcusdt@trade", "market-0")
        dispatcher.register(sub)
        del sub
        gc.collect()

        assert dispatcher.dispatch(_event()) == 0
        assert dispatcher.channels() == ()

    @pytest.mark.asyncio
    async def test_slow_consumer_does_not_block_others(self):
        """Test one slow subscriber does not affect another."""
        dispatcher = EventDispatcher()
        slow = Subscription("btcusdt@trade", "market-0", maxsize=1)
        fast = Subscription("btcusdt@trade", "market-0", maxsize=100)
        dispatcher.register(slow)
        dispatcher.register(fast)

        for i in range(50):
            dispatcher.dispatch(_event(seq=i))

        assert slow.dropped == 49
        assert fast.dropped == 0

    @pytest.mark.asyncio
    async def test_finish_ends_channel(self):
        """Test fail then finish raise the error then end the channel."""
        dispatcher = EventDispatcher()
        sub = Subscription("btcusdt@trade", "market-0")
        dispatcher.register(sub)
        dispatcher.fail("btcusdt@trade", StreamError("gone", "market-0"))
        dispatcher.finish("btcusdt@trade")

        with pytest.raises(StreamError):
            await sub.get()
        with pytest.raises(StreamError, match="closed"):
            await sub.get()
        assert dispatcher.subscribers("btcusdt@trade") == []
