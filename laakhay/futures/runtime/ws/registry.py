"""Subscription registry: the intended channel set per stream endpoint.

The registry records what callers asked for, independent of what any
connection currently carries. Transports replay ``snapshot()`` on every
(re)connect, so it is the single source of truth for subscription state.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable


class SubscriptionRegistry:
    """Reference-counted channel sets keyed by endpoint id.

    All methods are pure bookkeeping under one short lock, safe to call from
    the caller's subscribe path and a transport's reconnect path at once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # endpoint -> channel -> subscriber keys; dicts keep insertion order
        self._channels: dict[str, dict[str, set[Hashable]]] = {}

    def add(self, endpoint: str, channel: str, subscriber: Hashable = None) -> bool:
        """Record ``subscriber`` on ``channel``.

        Returns:
            True if the channel was not active on the endpoint before
        """
        with self._lock:
            channels = self._channels.setdefault(endpoint, {})
            holders = channels.get(channel)
            if holders is None:
                channels[channel] = {subscriber}
                return True
            holders.add(subscriber)
            return False

    def remove(self, endpoint: str, channel: str, subscriber: Hashable = None) -> bool:
        """Drop ``subscriber`` from ``channel``.

        Returns:
            True if the channel has no subscribers left and is now inactive
        """
        with self._lock:
            channels = self._channels.get(endpoint)
            if not channels or channel not in channels:
                return False
            holders = channels[channel]
            holders.discard(subscriber)
            if holders:
                return False
            del channels[channel]
            if not channels:
                del self._channels[endpoint]
            return True

    def snapshot(self, endpoint: str) -> tuple[str, ...]:
        """Active channels on ``endpoint`` in subscription order."""
        with self._lock:
            return tuple(self._channels.get(endpoint, ()))

    def contains(self, endpoint: str, channel: str) -> bool:
        with self._lock:
            return channel in self._channels.get(endpoint, {})

    def count(self, endpoint: str) -> int:
        with self._lock:
            return len(self._channels.get(endpoint, ()))

    def endpoints(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._channels)

    def find(self, channel: str) -> str | None:
        """Endpoint currently carrying ``channel``, if any."""
        with self._lock:
            for endpoint, channels in self._channels.items():
                if channel in channels:
                    return endpoint
            return None

    def clear(self, endpoint: str) -> tuple[str, ...]:
        """Forget an endpoint entirely, returning the channels it had."""
        with self._lock:
            return tuple(self._channels.pop(endpoint, ()))
