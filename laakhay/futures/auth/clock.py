"""Timestamp provider for signed requests."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Clock:
    """Millisecond clock aligned to the exchange.

    Timestamps are local wall time plus the last measured server offset and
    never go backwards, even when a resync moves the offset down.
    """

    def __init__(self, time_source: Callable[[], float] = time.time) -> None:
        self._time_source = time_source
        self._offset_ms = 0
        self._last_ms = 0

    @property
    def offset_ms(self) -> int:
        return self._offset_ms

    def local_ms(self) -> int:
        return int(self._time_source() * 1000)

    def now_ms(self) -> int:
        ts = self.local_ms() + self._offset_ms
        if ts < self._last_ms:
            ts = self._last_ms
        self._last_ms = ts
        return ts

    def sync(self, server_time_ms: int, local_time_ms: int | None = None) -> int:
        """Record the offset between server time and local time.

        Args:
            server_time_ms: ``serverTime`` reported by the exchange
            local_time_ms: Local reference time (defaults to now)

        Returns:
            The new offset in milliseconds
        """
        local = self.local_ms() if local_time_ms is None else local_time_ms
        old = self._offset_ms
        self._offset_ms = int(server_time_ms) - local
        logger.info(f"Clock synced: offset {old}ms -> {self._offset_ms}ms")
        return self._offset_ms
