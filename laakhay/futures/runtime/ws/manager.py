"""Stream manager: endpoints, sharding and subscriber lifecycle.

Public channels share combined-stream connections, sharded so no endpoint
carries more than ``max_streams_per_connection`` channels. The private user
data stream always gets its own endpoint, bound to the session key.

Lifecycle:
    subscribe()        registry.add -> transport.subscribe (if channel is new)
    Subscription.aclose() / garbage collection
                       registry.remove -> transport.unsubscribe, or close the
                       transport when its last channel goes
    session expiry     SessionExpiredError to user data subscribers, private
                       transport dropped until a fresh key exists
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections.abc import Coroutine, Iterable
from functools import partial
from typing import Any

from ...core.config import MAX_STREAMS_PER_CONNECTION, combined_stream_url, user_data_stream_url
from ...core.enums import ConnectionState
from ...core.exceptions import ConfigError, SessionExpiredError, StreamError
from .events import ErrorCallback, EventCallback, EventDispatcher, StreamEvent, Subscription
from .registry import SubscriptionRegistry
from .session import USER_DATA_ENDPOINT, UserDataSessionManager
from .transport import StateListener, StreamTransport, TransportConfig

logger = logging.getLogger(__name__)

USER_DATA_CHANNEL = "userData"
LISTEN_KEY_EXPIRED_EVENT = "listenKeyExpired"


class StreamManager:
    """Owns the registry, the event dispatcher and one transport per endpoint."""

    def __init__(
        self,
        ws_base_url: str,
        *,
        session: UserDataSessionManager | None = None,
        transport_config: TransportConfig | None = None,
        max_streams_per_connection: int = MAX_STREAMS_PER_CONNECTION,
        queue_size: int = 1000,
    ) -> None:
        if max_streams_per_connection < 1:
            raise ConfigError("max_streams_per_connection must be positive")
        self._ws_base = ws_base_url
        self._session = session
        self._transport_config = transport_config
        self._max_streams = max_streams_per_connection
        self._queue_size = queue_size

        self._registry = SubscriptionRegistry()
        self._dispatcher = EventDispatcher()
        self._transports: dict[str, StreamTransport] = {}
        self._state_listeners: list[StateListener] = []
        self._shard_ids = itertools.count()
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._closed = False

        if session is not None:
            session.add_expiry_listener(self._on_session_expired)
            session.add_rotation_listener(self._on_session_rotated)

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    def transport(self, endpoint_id: str) -> StreamTransport | None:
        return self._transports.get(endpoint_id)

    def endpoints(self) -> tuple[str, ...]:
        return tuple(self._transports)

    def add_state_listener(self, listener: StateListener) -> None:
        """Observe connection state changes of every endpoint."""
        self._state_listeners.append(listener)
        for transport in self._transports.values():
            transport.add_state_listener(listener)

    # ----------------------
    # Subscribe / unsubscribe
    # ----------------------
    async def subscribe(
        self,
        channel: str,
        *,
        callback: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
        event_types: Iterable[str] | None = None,
    ) -> Subscription:
        """Subscribe to a public channel such as ``btcusdt@aggTrade``."""
        self._ensure_open()
        if not channel or channel == USER_DATA_CHANNEL:
            raise ConfigError(f"Invalid public channel: {channel!r}")
        async with self._lock:
            endpoint = self._registry.find(channel) or self._pick_market_endpoint()
            sub = self._new_subscription(channel, endpoint, callback, on_error, event_types)
            is_new = self._registry.add(endpoint, channel, sub.id)
            transport = self._transports.get(endpoint) or self._open_market(endpoint)
            if is_new:
                await transport.subscribe(channel)
        logger.debug(f"Subscribed {channel} on {endpoint} (sub {sub.id})")
        return sub

    async def subscribe_user_data(
        self,
        *,
        callback: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
        event_types: Iterable[str] | None = None,
    ) -> Subscription:
        """Subscribe to the private account stream.

        Starts the session (acquiring a listen key) on first use. Session
        expiry is reported as ``SessionExpiredError`` to every subscriber.
        """
        self._ensure_open()
        if self._session is None:
            raise ConfigError("User data streams require API credentials")
        await self._session.start()
        async with self._lock:
            sub = self._new_subscription(
                USER_DATA_CHANNEL, USER_DATA_ENDPOINT, callback, on_error, event_types
            )
            self._registry.add(USER_DATA_ENDPOINT, USER_DATA_CHANNEL, sub.id)
            if USER_DATA_ENDPOINT not in self._transports:
                self._open_user_data()
        return sub

    async def unsubscribe(self, sub: Subscription) -> None:
        """Stop delivery to ``sub`` and release its channel."""
        sub.finish()
        self._dispatcher.unregister(sub)
        if self._closed:
            return
        async with self._lock:
            await self._release(sub.endpoint_id, sub.channel, sub.id)

    async def close(self) -> None:
        """Close every transport and end every subscription."""
        if self._closed:
            return
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        transports = list(self._transports.values())
        self._transports.clear()
        await asyncio.gather(*(t.close() for t in transports), return_exceptions=True)
        for channel in self._dispatcher.channels():
            self._dispatcher.finish(channel)
        for endpoint in self._registry.endpoints():
            self._registry.clear(endpoint)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info(f"Stream manager closed ({len(transports)} endpoint(s))")

    # ----------------------
    # Internals
    # ----------------------
    def _ensure_open(self) -> None:
        if self._closed:
            raise StreamError("Stream manager is closed")
        self._loop = asyncio.get_running_loop()

    def _new_subscription(
        self,
        channel: str,
        endpoint: str,
        callback: EventCallback | None,
        on_error: ErrorCallback | None,
        event_types: Iterable[str] | None,
    ) -> Subscription:
        sub = Subscription(
            channel,
            endpoint,
            maxsize=self._queue_size,
            callback=callback,
            on_error=on_error,
            event_types=event_types,
            on_close=self.unsubscribe,
            on_release=self._on_release,
        )
        self._dispatcher.register(sub)
        return sub

    def _pick_market_endpoint(self) -> str:
        for endpoint, transport in self._transports.items():
            if endpoint == USER_DATA_ENDPOINT or transport.state is ConnectionState.CLOSED:
                continue
            if self._registry.count(endpoint) < self._max_streams:
                return endpoint
        return f"market-{next(self._shard_ids)}"

    def _open_market(self, endpoint: str) -> StreamTransport:
        transport = StreamTransport(
            endpoint,
            combined_stream_url(self._ws_base),
            self._registry,
            self._dispatcher.dispatch,
            config=self._transport_config,
            on_failure=partial(self._on_transport_failure, endpoint),
        )
        return self._start(transport)

    def _open_user_data(self) -> StreamTransport:
        transport = StreamTransport(
            USER_DATA_ENDPOINT,
            self._user_data_url,
            self._registry,
            self._on_user_data_event,
            config=self._transport_config,
            control_frames=False,
            default_channel=USER_DATA_CHANNEL,
            on_failure=partial(self._on_transport_failure, USER_DATA_ENDPOINT),
        )
        return self._start(transport)

    def _start(self, transport: StreamTransport) -> StreamTransport:
        for listener in self._state_listeners:
            transport.add_state_listener(listener)
        self._transports[transport.endpoint_id] = transport
        transport.start()
        logger.info(f"Opened stream endpoint {transport.endpoint_id}")
        return transport

    async def _user_data_url(self) -> str:
        assert self._session is not None
        key = await self._session.wait_active()
        return user_data_stream_url(self._ws_base, key)

    def _on_user_data_event(self, event: StreamEvent) -> None:
        self._dispatcher.dispatch(event)
        if event.event_type == LISTEN_KEY_EXPIRED_EVENT and self._session is not None:
            self._session.mark_expired("Stream reported listenKeyExpired")

    def _on_session_expired(self, error: SessionExpiredError) -> None:
        self._dispatcher.fail(USER_DATA_CHANNEL, error)
        transport = self._transports.get(USER_DATA_ENDPOINT)
        if transport is not None:
            # stop reading the dead stream; reconnect waits for a fresh key
            self._spawn(transport.force_reconnect())

    async def _on_session_rotated(self, key: str) -> None:
        transport = self._transports.get(USER_DATA_ENDPOINT)
        if transport is None:
            return
        url = transport.connected_url
        if url is not None and url != user_data_stream_url(self._ws_base, key):
            await transport.force_reconnect()

    def _on_transport_failure(self, endpoint: str, error: StreamError) -> None:
        self._transports.pop(endpoint, None)
        for channel in self._registry.clear(endpoint):
            self._dispatcher.fail(channel, error)
            self._dispatcher.finish(channel)

    def _on_release(self, endpoint: str, channel: str, sub_id: int) -> None:
        # Runs from a garbage collection finalizer, possibly off-loop.
        loop = self._loop
        if self._closed or loop is None:
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(self._schedule_release, endpoint, channel, sub_id)

    def _schedule_release(self, endpoint: str, channel: str, sub_id: int) -> None:
        if not self._closed:
            self._spawn(self._release_locked(endpoint, channel, sub_id))

    async def _release_locked(self, endpoint: str, channel: str, sub_id: int) -> None:
        async with self._lock:
            await self._release(endpoint, channel, sub_id)

    async def _release(self, endpoint: str, channel: str, sub_id: int) -> None:
        if not self._registry.remove(endpoint, channel, sub_id):
            return
        transport = self._transports.get(endpoint)
        if transport is None:
            return
        if self._registry.count(endpoint) == 0:
            del self._transports[endpoint]
            logger.info(f"Last channel released; closing stream endpoint {endpoint}")
            await transport.close()
        else:
            await transport.unsubscribe(channel)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Stream manager task failed: {task.exception()}")
