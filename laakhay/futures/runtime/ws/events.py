"""Event demultiplexing from stream frames to subscriber handles.

Architecture:
    The transport turns each inbound frame into a ``StreamEvent`` and hands it
    to ``EventDispatcher.dispatch``, which fans it out to every live
    ``Subscription`` on that channel. The dispatcher holds subscriptions
    weakly: a handle the consumer drops stops receiving immediately and its
    finalizer releases the channel.

Backpressure:
    Each subscription has a bounded buffer. When it is full the oldest event
    is dropped and counted, so a slow consumer never blocks the transport or
    other subscribers on the same endpoint. Errors and the end-of-stream
    marker are never dropped.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import time
import weakref
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ...core.exceptions import StreamError

logger = logging.getLogger(__name__)

EventCallback = Callable[["StreamEvent"], Awaitable[None]] | Callable[["StreamEvent"], None]
ErrorCallback = Callable[[BaseException], Awaitable[None]] | Callable[[BaseException], None]
ReleaseCallback = Callable[[str, str, int], None]

_CLOSED = object()
_ids = itertools.count(1)


@dataclass(frozen=True)
class StreamEvent:
    """One inbound frame, tagged with where and when it arrived.

    ``epoch`` increments on every new connection of an endpoint. Ordering is
    guaranteed within an epoch only; frames in flight during a reconnect may
    be lost.
    """

    endpoint_id: str
    channel: str
    data: Any
    epoch: int
    received_at: float = field(default_factory=time.time)

    @property
    def event_type(self) -> str | None:
        if isinstance(self.data, dict):
            return self.data.get("e")
        return None


class Subscription:
    """Handle controlling delivery of one channel to one consumer.

    Use as an async iterator or call ``get()``. Delivery stops as soon as
    ``aclose()`` is called or the handle is garbage collected.

    Errors (such as ``SessionExpiredError``) reach every consumer: queue
    readers get them raised from ``get()``; callback consumers get them via
    ``on_error``, or through ``callback`` itself when no ``on_error`` is set.
    """

    def __init__(
        self,
        channel: str,
        endpoint_id: str,
        *,
        maxsize: int = 1000,
        callback: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
        event_types: Iterable[str] | None = None,
        on_close: Callable[[Subscription], Awaitable[None]] | None = None,
        on_release: ReleaseCallback | None = None,
    ) -> None:
        self.id = next(_ids)
        self.channel = channel
        self.endpoint_id = endpoint_id
        self.dropped = 0
        self.delivered = 0
        self._maxsize = maxsize
        self._items: deque[Any] = deque()
        self._pending_events = 0
        self._ready = asyncio.Event()
        self._callback = callback
        self._on_error = on_error
        self._event_types = frozenset(event_types) if event_types else None
        self._on_close = on_close
        self._closed = False
        self._exhausted = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self._finalizer = (
            weakref.finalize(self, on_release, endpoint_id, channel, self.id)
            if on_release is not None
            else None
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Items buffered for the consumer, errors and end marker included."""
        return len(self._items)

    def accepts(self, event: StreamEvent) -> bool:
        if self._event_types is None:
            return True
        return event.event_type in self._event_types

    def deliver(self, event: StreamEvent) -> bool:
        """Queue or hand ``event`` to the consumer. Never blocks."""
        if self._closed or not self.accepts(event):
            return False
        self.delivered += 1
        if self._callback is not None:
            self._invoke(self._callback, event)
        else:
            self._put(event)
        return True

    def fail(self, exc: BaseException) -> None:
        """Report ``exc`` to the consumer; delivery continues afterwards."""
        if self._closed:
            return
        if self._on_error is not None:
            self._invoke(self._on_error, exc)
        elif self._callback is not None:
            self._invoke(self._callback, exc)
        else:
            self._put(exc)

    def finish(self) -> None:
        """End delivery without notifying the owner (endpoint shut down)."""
        if self._closed:
            return
        self._closed = True
        if self._finalizer is not None:
            self._finalizer.detach()
        self._put(_CLOSED)

    async def aclose(self) -> None:
        """Stop delivery and release the channel."""
        if self._closed:
            return
        self.finish()
        if self._on_close is not None:
            await self._on_close(self)
        for task in list(self._tasks):
            task.cancel()

    async def get(self) -> StreamEvent:
        try:
            return await self.__anext__()
        except StopAsyncIteration:
            raise StreamError("Subscription closed", self.endpoint_id) from None

    def get_nowait(self) -> StreamEvent | None:
        """Next queued event, or None if nothing is waiting."""
        if not self._items:
            return None
        item = self._pop()
        if item is _CLOSED:
            self._exhausted = True
            return None
        if isinstance(item, BaseException):
            raise item
        return item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> StreamEvent:
        while not self._items:
            if self._exhausted:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()
        item = self._pop()
        if item is _CLOSED:
            self._exhausted = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.id}, channel={self.channel!r}, "
            f"endpoint={self.endpoint_id!r}, closed={self._closed})"
        )

    def _put(self, item: Any) -> None:
        if isinstance(item, StreamEvent):
            if 0 < self._maxsize <= self._pending_events:
                self._drop_oldest_event()
            self._pending_events += 1
        self._items.append(item)
        self._ready.set()

    def _drop_oldest_event(self) -> None:
        # control items (errors, end marker) keep their place
        for index, queued in enumerate(self._items):
            if isinstance(queued, StreamEvent):
                del self._items[index]
                self._pending_events -= 1
                self.dropped += 1
                return

    def _pop(self) -> Any:
        item = self._items.popleft()
        if isinstance(item, StreamEvent):
            self._pending_events -= 1
        return item

    def _invoke(self, handler: Callable[[Any], Any], item: Any) -> None:
        try:
            result = handler(item)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Subscriber callback for {self.channel} failed: {e}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Subscriber callback for {self.channel} failed: {task.exception()}")


class EventDispatcher:
    """Routes stream events to the subscriptions registered on their channel."""

    def __init__(self) -> None:
        self._subs: dict[str, weakref.WeakValueDictionary[int, Subscription]] = {}

    def register(self, sub: Subscription) -> None:
        self._subs.setdefault(sub.channel, weakref.WeakValueDictionary())[sub.id] = sub

    def unregister(self, sub: Subscription) -> None:
        subs = self._subs.get(sub.channel)
        if subs is None:
            return
        subs.pop(sub.id, None)
        if not subs:
            del self._subs[sub.channel]

    def subscribers(self, channel: str) -> list[Subscription]:
        subs = self._subs.get(channel)
        return list(subs.values()) if subs else []

    def channels(self) -> tuple[str, ...]:
        return tuple(ch for ch, subs in self._subs.items() if subs)

    def dispatch(self, event: StreamEvent) -> int:
        """Deliver ``event`` to its channel's subscribers.

        Returns:
            Number of subscriptions that accepted the event
        """
        subs = self.subscribers(event.channel)
        if not subs:
            logger.debug(f"No subscribers for {event.channel}; frame discarded")
            return 0
        return sum(1 for sub in subs if sub.deliver(event))

    def fail(self, channel: str, exc: BaseException) -> None:
        for sub in self.subscribers(channel):
            sub.fail(exc)

    def finish(self, channel: str) -> None:
        for sub in self.subscribers(channel):
            sub.finish()
        self._subs.pop(channel, None)
