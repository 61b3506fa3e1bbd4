"""Fakes for websocket-level tests.

``websockets.connect`` is patched with a ``FakeConnector`` that hands out
scripted ``FakeWebSocket`` instances, one per connection attempt.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any
from unittest.mock import patch

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK


class FakeWebSocket:
    def __init__(self, frames: list[Any] | tuple[Any, ...] = ()) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        for frame in frames:
            self.feed(frame)

    def feed(self, frame: Any) -> None:
        if isinstance(frame, dict | list):
            frame = json.dumps(frame)
        self._incoming.put_nowait(frame)

    def drop(self) -> None:
        """Simulate an abnormal connection loss."""
        self._incoming.put_nowait(ConnectionClosedError(None, None))

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def recv(self) -> Any:
        item = await self._incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(ConnectionClosedOK(None, None))


class _Connection:
    def __init__(self, ws: FakeWebSocket) -> None:
        self._ws = ws

    async def __aenter__(self) -> FakeWebSocket:
        return self._ws

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False


class FakeConnector:
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.kwargs: list[dict[str, Any]] = []
        self.sockets: list[FakeWebSocket] = []
        self.scripts: list[list[Any]] = []
        self.failures = 0

    def __call__(self, url: str, **kwargs: Any) -> _Connection:
        self.urls.append(url)
        self.kwargs.append(kwargs)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        ws = FakeWebSocket(self.scripts.pop(0) if self.scripts else ())
        self.sockets.append(ws)
        return _Connection(ws)


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def connector():
    fake = FakeConnector()
    with patch("websockets.connect", new=fake):
        yield fake


@pytest.fixture
def eventually():
    return _eventually
