"""User data stream session (listen key) lifecycle.

State machine:
    UNINITIALIZED -> ACTIVE        key acquired
    ACTIVE -> RENEWING -> ACTIVE   keepalive succeeded, horizon extended
    ACTIVE|RENEWING -> EXPIRED     renewals failed past the horizon, the
                                   exchange reported the key unknown (-1125)
                                   or the stream sent ``listenKeyExpired``
    EXPIRED -> ACTIVE              fresh key acquired, rotation listeners run
    * -> CLOSED                    explicit close (terminal)

The keepalive task runs independently of stream consumption: losing the key
silently drops the private stream, so it renews whether or not anyone reads.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import random
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, Protocol

from ...core.config import LISTEN_KEY_KEEPALIVE_SECONDS, LISTEN_KEY_VALIDITY_SECONDS
from ...core.enums import SessionState
from ...core.exceptions import ApiError, SessionExpiredError, StreamError
from ..rest.retry import LISTEN_KEY_NOT_FOUND

logger = logging.getLogger(__name__)

USER_DATA_ENDPOINT = "user-data"

RotationListener = Callable[[str], Awaitable[None] | None]
ExpiryListener = Callable[[SessionExpiredError], Any]


class ListenKeyService(Protocol):
    """REST operations backing a session (see ``UserStreamAPI``)."""

    async def create_listen_key(self) -> str: ...

    async def keepalive_listen_key(self, listen_key: str | None = None) -> str | None: ...

    async def close_listen_key(self, listen_key: str | None = None) -> None: ...


@dataclass(frozen=True)
class SessionConfig:
    keepalive_interval: float = LISTEN_KEY_KEEPALIVE_SECONDS
    validity: float = LISTEN_KEY_VALIDITY_SECONDS  # expiry horizon after the last renewal
    retry_delay: float = 60.0  # between failed renewals
    reacquire_base_delay: float = 1.0
    reacquire_max_delay: float = 60.0
    jitter: float = 0.2


@dataclass(frozen=True)
class UserDataSession:
    listen_key: str
    created_at: float
    renewed_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


def mask_key(listen_key: str) -> str:
    return f"{listen_key[:6]}..." if len(listen_key) > 6 else "***"


class UserDataSessionManager:
    """Acquires, renews and invalidates the listen key for one account."""

    def __init__(
        self,
        service: ListenKeyService,
        config: SessionConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._service = service
        self._conf = config or SessionConfig()
        self._clock = clock
        # Guards _session; held for metadata only, never across an await.
        self._lock = threading.Lock()
        self._session: UserDataSession | None = None
        self._state = SessionState.UNINITIALIZED
        self._active = asyncio.Event()
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._rotation_listeners: list[RotationListener] = []
        self._expiry_listeners: list[ExpiryListener] = []
        self._sleep = asyncio.sleep

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> UserDataSession | None:
        with self._lock:
            return self._session

    def current_key(self) -> str | None:
        with self._lock:
            return self._session.listen_key if self._session else None

    def add_rotation_listener(self, listener: RotationListener) -> None:
        """Called with the new key whenever the key value changes."""
        self._rotation_listeners.append(listener)

    def add_expiry_listener(self, listener: ExpiryListener) -> None:
        self._expiry_listeners.append(listener)

    async def start(self) -> str:
        """Acquire a key (if none yet) and start the keepalive task."""
        if self._state is SessionState.CLOSED:
            raise StreamError("Session manager is closed", USER_DATA_ENDPOINT)
        key = self.current_key()
        if key is None:
            key = await self._acquire()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._keepalive_loop(), name="listen-key-keepalive")
        return key

    async def wait_active(self) -> str:
        """Block until a live key exists and return it."""
        while True:
            if self._state is SessionState.CLOSED:
                raise StreamError("Session manager is closed", USER_DATA_ENDPOINT)
            key = self.current_key()
            if key is not None:
                return key
            await self._active.wait()

    async def renew(self) -> UserDataSession:
        """Send one keepalive and extend the expiry horizon.

        Raises:
            SessionExpiredError: No live key to renew
            ApiError: Keepalive rejected; ``-1125`` also expires the session
        """
        key = self.current_key()
        if key is None:
            raise SessionExpiredError("No active listen key", USER_DATA_ENDPOINT)
        self._state = SessionState.RENEWING
        try:
            returned = await self._service.keepalive_listen_key(key)
        except ApiError as e:
            if e.code == LISTEN_KEY_NOT_FOUND:
                self._expire(f"Listen key rejected by exchange: {e}")
            elif self._state is SessionState.RENEWING:
                self._state = SessionState.ACTIVE
            raise

        now = self._clock()
        with self._lock:
            current = self._session
            if current is None or current.listen_key != key:
                # expired or rotated while the call was in flight
                raise SessionExpiredError("Listen key changed during renewal", USER_DATA_ENDPOINT)
            rotated = bool(returned) and returned != key
            if rotated:
                self._session = UserDataSession(returned, now, now, now + self._conf.validity)
            else:
                self._session = replace(current, renewed_at=now, expires_at=now + self._conf.validity)
            session = self._session
        self._state = SessionState.ACTIVE
        logger.debug(f"Listen key {mask_key(session.listen_key)} renewed")
        if rotated:
            logger.info(f"Listen key rotated to {mask_key(session.listen_key)}")
            await self._notify_rotation(session.listen_key)
        return session

    def mark_expired(self, reason: str = "Listen key expired") -> None:
        """Invalidate the key now; the keepalive task re-acquires."""
        if self._state in (SessionState.ACTIVE, SessionState.RENEWING):
            self._expire(reason)

    async def close(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        with self._lock:
            session, self._session = self._session, None
        # wake wait_active() callers so they observe CLOSED
        self._active.set()
        if session is None:
            return
        try:
            await self._service.close_listen_key(session.listen_key)
        except ApiError as e:
            logger.warning(f"Failed to close listen key {mask_key(session.listen_key)}: {e}")

    # ----------------------
    # Internals
    # ----------------------
    async def _acquire(self) -> str:
        key = await self._service.create_listen_key()
        now = self._clock()
        with self._lock:
            self._session = UserDataSession(key, now, now, now + self._conf.validity)
        self._state = SessionState.ACTIVE
        self._wake.clear()
        self._active.set()
        logger.info(f"Listen key {mask_key(key)} acquired")
        return key

    def _expire(self, reason: str) -> None:
        with self._lock:
            self._session = None
        self._state = SessionState.EXPIRED
        self._active.clear()
        self._wake.set()
        error = SessionExpiredError(reason, USER_DATA_ENDPOINT)
        logger.warning(f"User data session expired: {reason}")
        for listener in self._expiry_listeners:
            try:
                listener(error)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Session expiry listener failed: {e}")

    async def _notify_rotation(self, key: str) -> None:
        for listener in self._rotation_listeners:
            try:
                result = listener(key)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # noqa: BLE001
                logger.error(f"Session rotation listener failed: {e}")

    async def _wait(self, timeout: float) -> None:
        """Sleep up to ``timeout``, waking early if the session expires."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._wake.wait(), timeout=max(0.0, timeout))

    async def _keepalive_loop(self) -> None:
        conf = self._conf
        while self._state is not SessionState.CLOSED:
            session = self.session
            if session is None:
                await self._reacquire()
                continue

            await self._wait(session.renewed_at + conf.keepalive_interval - self._clock())
            if self.session is None:
                continue

            while True:
                try:
                    await self.renew()
                    break
                except SessionExpiredError:
                    break
                except ApiError as e:
                    current = self.session
                    if current is None:
                        break
                    remaining = current.expires_at - self._clock()
                    if remaining <= 0:
                        self._expire(f"Keepalive failed past the expiry horizon: {e}")
                        break
                    logger.warning(
                        f"Listen key keepalive failed ({e}); retrying in "
                        f"{min(conf.retry_delay, remaining):.1f}s"
                    )
                    await self._wait(min(conf.retry_delay, remaining))
                    if self.session is None:
                        break

    async def _reacquire(self) -> None:
        conf = self._conf
        delay = conf.reacquire_base_delay
        while True:
            try:
                key = await self._acquire()
                break
            except ApiError as e:
                logger.warning(f"Listen key acquisition failed ({e}); retrying in {delay:.1f}s")
                await self._sleep(delay)
                factor = random.uniform(1 - conf.jitter, 1 + conf.jitter)
                delay = min(delay * 2, conf.reacquire_max_delay) * factor
        await self._notify_rotation(key)
