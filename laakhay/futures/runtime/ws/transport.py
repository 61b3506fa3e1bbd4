"""WebSocket transport for one stream endpoint.

Separation of concerns: the transport owns a single persistent connection,
its reconnect loop and the control frames on the wire. What should be
subscribed lives in the ``SubscriptionRegistry``; where frames go is the
caller's ``on_event`` callback.

State machine:
    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> DEGRADED       connection lost, forced reconnect, idle deadline
    DEGRADED -> RECONNECTING    URL resolved (private streams wait for a live key)
    RECONNECTING -> CONNECTED   handshake done and registry replayed
    * -> CLOSED                 explicit close, or reconnect deadline exhausted

Ordering: frames are delivered in arrival order within one connection epoch.
Nothing is delivered on a new connection before every registry channel has
been re-subscribed.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from ...core.config import MAX_CONTROL_FRAMES_PER_SECOND
from ...core.enums import ConnectionState
from ...core.exceptions import StreamError
from .events import StreamEvent
from .registry import SubscriptionRegistry

logger = logging.getLogger(__name__)

UrlSource = str | Callable[[], Awaitable[str]]
StateListener = Callable[[str, ConnectionState, ConnectionState], None]


@dataclass(frozen=True)
class TransportConfig:
    ping_interval: float | None = 30
    ping_timeout: float | None = 10
    open_timeout: float | None = 10
    close_timeout: float | None = 10
    base_reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    jitter: float = 0.2  # +/-20% jitter to avoid thundering herds
    max_size: int | None = None  # bytes; None = websockets default
    max_queue: int | None = 1024  # number of messages queued; None = websockets default
    idle_timeout: float | None = None  # reconnect when no frame arrives for this long
    max_reconnect_elapsed: float | None = None  # give up after this long without a connection
    control_frame_interval: float = 1.0 / MAX_CONTROL_FRAMES_PER_SECOND


class StreamTransport:
    """Persistent, self-healing connection for one stream endpoint."""

    def __init__(
        self,
        endpoint_id: str,
        url: UrlSource,
        registry: SubscriptionRegistry,
        on_event: Callable[[StreamEvent], Any],
        *,
        config: TransportConfig | None = None,
        control_frames: bool = True,
        default_channel: str | None = None,
        on_failure: Callable[[StreamError], Any] | None = None,
    ) -> None:
        self.endpoint_id = endpoint_id
        self._url = url
        self._registry = registry
        self._on_event = on_event
        self._conf = config or TransportConfig()
        self._control_frames = control_frames
        self._default_channel = default_channel
        self._on_failure = on_failure

        self._state = ConnectionState.DISCONNECTED
        self._listeners: list[StateListener] = []
        self._ws: Any = None
        self._connected_url: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._epoch = 0
        self._wire: set[str] = set()
        self._ids = itertools.count(1)
        self._send_lock = asyncio.Lock()
        self._connected = asyncio.Event()
        self._force = False
        self._closing = False
        self._replaying = False

    # ----------------------
    # Introspection
    # ----------------------
    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def connected_url(self) -> str | None:
        """URL of the live connection, if any."""
        return self._connected_url

    @property
    def wire_channels(self) -> frozenset[str]:
        """Channels subscribed on the current connection."""
        return frozenset(self._wire)

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # ----------------------
    # Lifecycle
    # ----------------------
    def start(self) -> None:
        """Spawn the connection task (idempotent)."""
        if self._state is ConnectionState.CLOSED:
            raise StreamError("Transport is closed", self.endpoint_id)
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"stream-{self.endpoint_id}")

    async def wait_connected(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def force_reconnect(self) -> None:
        """Drop the current connection and reconnect without backoff."""
        ws = self._ws
        if ws is not None:
            self._force = True
            logger.info(f"[{self.endpoint_id}] Forced reconnect")
            with contextlib.suppress(WebSocketException, OSError):
                await ws.close()

    async def close(self) -> None:
        """Close handshake, stop reconnecting. Terminal."""
        if self._state is ConnectionState.CLOSED:
            return
        self._closing = True
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(WebSocketException, OSError):
                await ws.close()
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        self._set_state(ConnectionState.CLOSED)

    # ----------------------
    # Subscriptions
    # ----------------------
    async def subscribe(self, channel: str) -> None:
        """Put ``channel`` on the wire now if connected; replay covers it otherwise."""
        if not self._control_frames or channel in self._wire:
            return
        ws = self._ws
        if ws is None or not self.is_connected:
            return
        self._wire.add(channel)
        await self._send_control(ws, "SUBSCRIBE", [channel])

    async def unsubscribe(self, channel: str) -> None:
        if not self._control_frames or channel not in self._wire:
            return
        # Replay diffs the wire against the registry and unsubscribes it
        if self._replaying:
            return
        ws = self._ws
        self._wire.discard(channel)
        if ws is None or not self.is_connected:
            return
        await self._send_control(ws, "UNSUBSCRIBE", [channel])

    # ----------------------
    # Internals
    # ----------------------
    def _set_state(self, new: ConnectionState) -> None:
        old = self._state
        if old is new:
            return
        self._state = new
        logger.debug(f"[{self.endpoint_id}] {old.value} -> {new.value}")
        for listener in self._listeners:
            try:
                listener(self.endpoint_id, old, new)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"[{self.endpoint_id}] State listener failed: {e}")

    def _next_delay(self, delay: float) -> float:
        """Exponential backoff with jitter, capped to max_reconnect_delay."""
        conf = self._conf
        delay = min(delay * 2, conf.max_reconnect_delay)
        factor = random.uniform(1 - conf.jitter, 1 + conf.jitter)
        return max(conf.base_reconnect_delay, delay * factor)

    def _connect_kwargs(self) -> dict[str, Any]:
        conf = self._conf
        kwargs: dict[str, Any] = {
            "ping_interval": conf.ping_interval,
            "ping_timeout": conf.ping_timeout,
            "open_timeout": conf.open_timeout,
            "close_timeout": conf.close_timeout,
        }
        # Only include size/queue if not None to keep library defaults
        if conf.max_size is not None:
            kwargs["max_size"] = conf.max_size
        if conf.max_queue is not None:
            kwargs["max_queue"] = conf.max_queue
        return kwargs

    async def _resolve_url(self) -> str:
        if isinstance(self._url, str):
            return self._url
        return await self._url()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        delay = self._conf.base_reconnect_delay
        outage_started: float | None = None

        while not self._closing:
            try:
                url = await self._resolve_url()
            except StreamError as e:
                if not self._closing:
                    self._fail(e)
                return
            try:
                self._set_state(
                    ConnectionState.RECONNECTING if self._epoch else ConnectionState.CONNECTING
                )
                async with websockets.connect(url, **self._connect_kwargs()) as ws:
                    self._ws = ws
                    self._connected_url = url
                    self._epoch += 1
                    self._wire = set()
                    await self._replay(ws)
                    self._set_state(ConnectionState.CONNECTED)
                    self._connected.set()
                    delay = self._conf.base_reconnect_delay
                    outage_started = None
                    await self._read_loop(ws)
            except asyncio.CancelledError:
                raise
            except (WebSocketException, OSError, asyncio.TimeoutError) as e:
                if not self._closing and not self._force:
                    logger.warning(f"[{self.endpoint_id}] Connection lost: {type(e).__name__}: {e}")
            finally:
                self._ws = None
                self._connected_url = None
                self._wire = set()
                self._connected.clear()

            if self._closing:
                break
            self._set_state(ConnectionState.DEGRADED)
            if self._force:
                self._force = False
                continue

            if outage_started is None:
                outage_started = loop.time()
            limit = self._conf.max_reconnect_elapsed
            if limit is not None and loop.time() - outage_started >= limit:
                self._fail(
                    StreamError(
                        f"Could not reconnect {self.endpoint_id} within {limit:.1f}s",
                        self.endpoint_id,
                    )
                )
                return
            logger.info(f"[{self.endpoint_id}] Reconnecting in {delay:.2f}s")
            await asyncio.sleep(delay)
            delay = self._next_delay(delay)

    def _fail(self, error: StreamError) -> None:
        """Stop for good and hand ``error`` to the owner."""
        logger.error(f"[{self.endpoint_id}] Giving up: {error}")
        self._closing = True
        self._set_state(ConnectionState.CLOSED)
        if self._on_failure is not None:
            self._on_failure(error)

    async def _replay(self, ws: Any) -> None:
        """Bring the wire in line with the registry before any frame is read."""
        if not self._control_frames:
            return
        self._replaying = True
        try:
            sent = await self._replay_diff(ws)
        finally:
            self._replaying = False
        if sent:
            logger.info(f"[{self.endpoint_id}] Replayed {sent} channel(s) on epoch {self._epoch}")

    async def _replay_diff(self, ws: Any) -> int:
        sent = 0
        while True:
            wanted = self._registry.snapshot(self.endpoint_id)
            missing = [ch for ch in wanted if ch not in self._wire]
            stale = [ch for ch in self._wire if ch not in wanted]
            if not missing and not stale:
                break
            for channel in missing:
                self._wire.add(channel)
                await self._send_control(ws, "SUBSCRIBE", [channel])
                sent += 1
            for channel in stale:
                self._wire.discard(channel)
                await self._send_control(ws, "UNSUBSCRIBE", [channel])
        return sent

    async def _send_control(self, ws: Any, method: str, params: list[str]) -> None:
        async with self._send_lock:
            frame = {"method": method, "params": params, "id": next(self._ids)}
            await ws.send(json.dumps(frame))
            if self._conf.control_frame_interval > 0:
                await asyncio.sleep(self._conf.control_frame_interval)

    async def _read_loop(self, ws: Any) -> None:
        idle = self._conf.idle_timeout
        while True:
            if idle is None:
                message = await ws.recv()
            else:
                message = await asyncio.wait_for(ws.recv(), timeout=idle)
            self._handle_message(message)

    def _handle_message(self, message: str | bytes) -> None:
        try:
            payload = json.loads(message)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            logger.warning(f"[{self.endpoint_id}] Failed to parse frame: {message!r:.200}")
            return

        if isinstance(payload, dict):
            if "id" in payload and ("result" in payload or "error" in payload):
                if payload.get("error"):
                    logger.warning(f"[{self.endpoint_id}] Control frame rejected: {payload}")
                return
            if "stream" in payload and "data" in payload:
                channel, data = str(payload["stream"]), payload["data"]
            else:
                channel, data = self._default_channel or str(payload.get("e", "")), payload
        else:
            channel, data = self._default_channel or "", payload

        event = StreamEvent(self.endpoint_id, channel, data, self._epoch)
        try:
            self._on_event(event)
        except Exception as e:  # noqa: BLE001
            logger.error(f"[{self.endpoint_id}] Event handler failed: {e}")
