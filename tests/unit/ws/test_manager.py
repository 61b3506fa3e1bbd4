"""Unit tests for StreamManager.

Tests focus on sharding, channel release and the private stream lifecycle.
"""

from __future__ import annotations

import asyncio
import gc
from unittest.mock import AsyncMock

import pytest

from laakhay.futures.core.enums import ConnectionState
from laakhay.futures.core.exceptions import (
    ConfigError,
    SessionExpiredError,
    StreamError,
    TransientError,
)
from laakhay.futures.runtime.ws.manager import USER_DATA_CHANNEL, StreamManager
from laakhay.futures.runtime.ws.session import (
    USER_DATA_ENDPOINT,
    SessionConfig,
    UserDataSessionManager,
)
from laakhay.futures.runtime.ws.transport import TransportConfig

WS = "wss://fstream.test"
FAST = TransportConfig(base_reconnect_delay=0.01, max_reconnect_delay=0.02, control_frame_interval=0)


def _manager(**kwargs) -> StreamManager:
    return StreamManager(WS, transport_config=FAST, **kwargs)


class TestPublicStreams:
    """Test public market stream subscriptions."""

    @pytest.mark.asyncio
    async def test_shards_channels_over_endpoints(self, connector):
        """Test channels are sharded over market endpoints."""
        manager = _manager(max_streams_per_connection=2)
        subs = [await manager.subscribe(f"s{i}usdt@trade") for i in range(3)]

        assert manager.endpoints() == ("market-0", "market-1")
        assert manager.registry.snapshot("market-0") == ("s0usdt@trade", "s1usdt@trade")
        assert manager.registry.snapshot("market-1") == ("s2usdt@trade",)
        assert {s.endpoint_id for s in subs} == {"market-0", "market-1"}
        await manager.close()

    @pytest.mark.asyncio
    async def test_combined_stream_url(self, connector, eventually):
        """Test public endpoints use the combined stream URL."""
        manager = _manager()
        await manager.subscribe("btcusdt@trade")
        await eventually(lambda: connector.urls)
        assert connector.urls == ["wss://fstream.test/stream"]
        await manager.close()

    @pytest.mark.asyncio
    async def test_frames_reach_subscriber(self, connector, eventually):
        """Test a frame reaches its subscriber."""
        manager = _manager()
        sub = await manager.subscribe("btcusdt@aggTrade")
        await eventually(lambda: manager.transport("market-0").is_connected)

        connector.sockets[0].feed({"stream": "btcusdt@aggTrade", "data": {"e": "aggTrade", "p": "1"}})
        event = await asyncio.wait_for(sub.get(), 1)

        assert event.data["p"] == "1"
        assert event.endpoint_id == "market-0"
        await manager.close()

    @pytest.mark.asyncio
    async def test_shared_channel_subscribed_once(self, connector, eventually):
        """Test a shared channel is subscribed once and released last."""
        manager = _manager()
        transport_ready = lambda: manager.transport("market-0").is_connected  # noqa: E731
        first = await manager.subscribe("btcusdt@trade")
        await eventually(transport_ready)
        second = await manager.subscribe("btcusdt@trade")

        ws = connector.sockets[0]
        assert [f["params"] for f in ws.sent] == [["btcusdt@trade"]]

        await first.aclose()
        assert manager.registry.contains("market-0", "btcusdt@trade")
        assert not ws.closed

        await second.aclose()
        assert manager.endpoints() == ()
        assert ws.closed
        await manager.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_sends_control_frame_when_others_remain(self, connector, eventually):
        """Test closing one channel sends UNSUBSCRIBE while others remain."""
        manager = _manager()
        a = await manager.subscribe("btcusdt@trade")
        await manager.subscribe("ethusdt@trade")
        await eventually(lambda: manager.transport("market-0").is_connected)

        await a.aclose()

        assert connector.sockets[0].sent[-1] == {
            "method": "UNSUBSCRIBE",
            "params": ["btcusdt@trade"],
            "id": 3,
        }
        await manager.close()

    @pytest.mark.asyncio
    async def test_dropped_subscription_releases_channel(self, connector, eventually):
        """Test a collected handle releases its channel."""
        manager = _manager()
        await manager.subscribe("btcusdt@trade")
        gc.collect()

        await eventually(lambda: not manager.registry.contains("market-0", "btcusdt@trade"))
        await eventually(lambda: manager.endpoints() == ())
        await manager.close()

    @pytest.mark.asyncio
    async def test_rejects_invalid_channel(self, connector):
        """Test empty and reserved channel names are rejected."""
        manager = _manager()
        with pytest.raises(ConfigError):
            await manager.subscribe("")
        with pytest.raises(ConfigError):
            await manager.subscribe(USER_DATA_CHANNEL)
        await manager.close()

    @pytest.mark.asyncio
    async def test_close_ends_subscriptions(self, connector, eventually):
        """Test close() ends every subscription."""
        manager = _manager()
        sub = await manager.subscribe("btcusdt@trade")
        await eventually(lambda: manager.transport("market-0").is_connected)

        await manager.close()

        assert [e async for e in sub] == []
        assert connector.sockets[0].closed

    @pytest.mark.asyncio
    async def test_transport_failure_surfaces_to_subscribers(self, connector, eventually):
        """Test a failed endpoint raises StreamError to subscribers."""
        connector.failures = 1000
        config = TransportConfig(
            base_reconnect_delay=0.01,
            max_reconnect_delay=0.01,
            max_reconnect_elapsed=0.03,
            control_frame_interval=0,
        )
        manager = StreamManager(WS, transport_config=config)
        sub = await manager.subscribe("btcusdt@trade")

        with pytest.raises(StreamError):
            await asyncio.wait_for(sub.get(), 1)
        assert manager.endpoints() == ()
        await manager.close()


class TestUserDataStream:
    """Test the private user data stream."""

    @pytest.mark.asyncio
    async def test_requires_session(self, connector):
        """Test user data needs a session manager."""
        manager = _manager()
        with pytest.raises(ConfigError):
            await manager.subscribe_user_data()
        await manager.close()

    @pytest.mark.asyncio
    async def test_connects_with_listen_key(self, connector, eventually):
        """Test the private stream connects with the listen key."""
        service = AsyncMock()
        service.create_listen_key = AsyncMock(return_value="abc123")
        session = UserDataSessionManager(service, SessionConfig())
        manager = _manager(session=session)

        sub = await manager.subscribe_user_data(event_types=["ORDER_TRADE_UPDATE"])
        await eventually(lambda: connector.sockets)
        connector.sockets[0].feed({"e": "ACCOUNT_UPDATE", "E": 1})
        connector.sockets[0].feed({"e": "ORDER_TRADE_UPDATE", "E": 2})
        event = await asyncio.wait_for(sub.get(), 1)

        assert connector.urls == ["wss://fstream.test/ws/abc123"]
        assert connector.sockets[0].sent == []
        assert event.channel == USER_DATA_CHANNEL
        assert event.data["E"] == 2
        await manager.close()
        await session.close()

    @pytest.mark.asyncio
    async def test_listen_key_expired_frame_rotates_stream(self, connector, eventually):
        """Test listenKeyExpired rotates the stream to a fresh key."""
        service = AsyncMock()
        service.create_listen_key = AsyncMock(side_effect=["key-1", "key-2"])
        session = UserDataSessionManager(service, SessionConfig(reacquire_base_delay=0.01))
        manager = _manager(session=session)

        sub = await manager.subscribe_user_data()
        await eventually(lambda: manager.transport(USER_DATA_ENDPOINT).is_connected)

        connector.sockets[0].feed({"e": "listenKeyExpired", "E": 5})
        await eventually(lambda: len(connector.urls) == 2)

        assert (await sub.get()).event_type == "listenKeyExpired"
        with pytest.raises(SessionExpiredError):
            await sub.get()
        assert connector.urls[1] == "wss://fstream.test/ws/key-2"
        await manager.close()
        await session.close()

    @pytest.mark.asyncio
    async def test_reconnects_only_after_fresh_key(self, connector, eventually):
        """Test the stream stays dark until a fresh key exists."""
        service = AsyncMock()
        service.create_listen_key = AsyncMock(
            side_effect=["key-1", TransientError("down"), "key-2"]
        )
        async def keepalive(key):
            if key == "key-1":
                raise TransientError("down", outcome_unknown=True)
            return None

        service.keepalive_listen_key = AsyncMock(side_effect=keepalive)
        session = UserDataSessionManager(
            service,
            SessionConfig(
                keepalive_interval=0.01,
                validity=0.05,
                retry_delay=0.01,
                reacquire_base_delay=0.02,
            ),
        )
        manager = _manager(session=session)
        transitions: list[tuple[ConnectionState, str | None]] = []
        manager.add_state_listener(
            lambda ep, old, new: transitions.append((new, session.current_key()))
        )

        sub = await manager.subscribe_user_data()
        await eventually(lambda: len(connector.urls) == 2)
        await eventually(lambda: manager.transport(USER_DATA_ENDPOINT).is_connected)

        with pytest.raises(SessionExpiredError):
            await asyncio.wait_for(sub.get(), 1)

        states = [state for state, _ in transitions]
        assert states[:5] == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DEGRADED,
            ConnectionState.RECONNECTING,
            ConnectionState.CONNECTED,
        ]
        assert transitions[2][1] is None  # dark while no key exists
        assert transitions[3] == (ConnectionState.RECONNECTING, "key-2")
        assert connector.urls == ["wss://fstream.test/ws/key-1", "wss://fstream.test/ws/key-2"]
        await manager.close()
        await session.close()

    @pytest.mark.asyncio
    async def test_callback_subscriber_told_of_expiry(self, connector, eventually):
        """Test callback subscribers receive SessionExpiredError on expiry."""
        service = AsyncMock()
        service.create_listen_key = AsyncMock(side_effect=["key-1", "key-2"])
        session = UserDataSessionManager(service, SessionConfig(reacquire_base_delay=0.01))
        manager = _manager(session=session)
        events, errors = [], []

        handled = await manager.subscribe_user_data(callback=events.append, on_error=errors.append)
        plain: list = []
        unhandled = await manager.subscribe_user_data(callback=plain.append)
        await eventually(lambda: manager.transport(USER_DATA_ENDPOINT).is_connected)

        session.mark_expired("test")

        assert len(errors) == 1
        assert isinstance(errors[0], SessionExpiredError)
        assert events == []
        assert len(plain) == 1
        assert isinstance(plain[0], SessionExpiredError)
        assert not handled.closed and not unhandled.closed
        await manager.close()
        await session.close()
