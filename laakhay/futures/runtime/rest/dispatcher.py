"""Signed request dispatch with classification and retry.

Architecture:
    Facades describe endpoints with ``RestEndpointSpec`` and hand parameters
    to ``RequestDispatcher.execute``. The dispatcher owns the whole attempt
    loop: throttle wait, timestamp, signature, send, classify, retry. Each
    attempt is re-signed with a fresh timestamp so no signature is reused
    outside its receive window.

Retry rules:
    - Transient (network, timeout, 5xx): backoff and retry only when the
      endpoint is idempotent. Otherwise surface at once, with
      ``outcome_unknown`` set when the request may have been executed.
    - Rate limit: wait at least the remote ``Retry-After`` and retry.
    - Auth, validation, unknown: never retried.
    - ``-1021`` (timestamp outside recvWindow): resync the clock and resend
      once. The exchange rejected the request unprocessed, so this is safe
      for every endpoint.

Shutdown:
    ``close()`` wakes every attempt loop sleeping in a backoff; each then raises
    ``ConfigError`` instead of sending again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, TypeVar

import aiohttp
import pydantic

from ...auth.clock import Clock
from ...auth.signer import Params, Signer, canonical_query
from ...core.config import API_KEY_HEADER, DEFAULT_RECV_WINDOW_MS, MAX_RECV_WINDOW_MS
from ...core.enums import ErrorCategory, HttpMethod
from ...core.exceptions import (
    ApiError,
    ConfigError,
    RateLimitError,
    TransientError,
    error_type_for,
)
from .endpoint import RestEndpointSpec
from .http_client import HTTPClient, HTTPResponse
from .request import SignedRequest
from .retry import (
    OUTCOME_UNKNOWN_CODES,
    TIMESTAMP_OUTSIDE_RECV_WINDOW,
    RetryPolicy,
    classify_error,
    parse_retry_after,
)
from .telemetry import AttemptHook, RequestAttempt, emit, log_retry_scheduled

logger = logging.getLogger(__name__)

T = TypeVar("T")

SERVER_TIME_PATH = "/fapi/v1/time"
SERVER_TIME = RestEndpointSpec("server_time", HttpMethod.GET, SERVER_TIME_PATH)


@lru_cache(maxsize=256)
def _adapter(model: Any) -> pydantic.TypeAdapter:
    return pydantic.TypeAdapter(model)


class RequestDispatcher:
    """Builds, signs, sends and retries REST requests."""

    def __init__(
        self,
        http: HTTPClient,
        *,
        signer: Signer | None = None,
        clock: Clock | None = None,
        recv_window: int = DEFAULT_RECV_WINDOW_MS,
        retry: RetryPolicy | None = None,
        resync_on_clock_skew: bool = True,
    ) -> None:
        if not 0 < int(recv_window) <= MAX_RECV_WINDOW_MS:
            raise ConfigError(f"recv_window must be in (0, {MAX_RECV_WINDOW_MS}] ms")
        self._http = http
        self._signer = signer
        self._clock = clock or Clock()
        self._recv_window = int(recv_window)
        self._retry = retry or RetryPolicy()
        self._resync_on_clock_skew = resync_on_clock_skew
        self._hooks: list[AttemptHook] = []
        self._closed = asyncio.Event()
        self._sleep = self._backoff

    @property
    def has_credentials(self) -> bool:
        return self._signer is not None

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def http(self) -> HTTPClient:
        return self._http

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def add_attempt_hook(self, hook: AttemptHook) -> None:
        """Register a callback invoked with a ``RequestAttempt`` after every attempt."""
        self._hooks.append(hook)

    async def call(self, spec: RestEndpointSpec, params: Params | None, model: type[T] | Any) -> T:
        """Execute ``spec`` and validate the response into ``model``."""
        data = await self.execute(spec, params)
        try:
            return _adapter(model).validate_python(data)
        except pydantic.ValidationError as e:
            raise ApiError(
                f"Unexpected response shape from {spec.id}: {e.error_count()} error(s)",
                category=ErrorCategory.UNKNOWN,
            ) from e

    async def execute(self, spec: RestEndpointSpec, params: Params | None = None) -> Any:
        """Send ``spec`` with ``params`` and return the decoded JSON body.

        Raises:
            ConfigError: Authenticated endpoint called without credentials
            ApiError: Subclass matching the failure category, after retries
        """
        if spec.security.needs_key and self._signer is None:
            raise ConfigError(f"Endpoint '{spec.id}' requires API credentials")

        attempt = 0
        resynced = False
        while True:
            attempt += 1
            await self._http.wait_for_throttle()
            self._ensure_open()
            started = time.perf_counter()
            try:
                response = await self._send(spec, params)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                error: ApiError = self._transport_error(spec, e)
            else:
                if response.ok:
                    self._record(spec, attempt, started, "ok", status=response.status)
                    return response.data
                error = self._api_error(response)

            self._record(
                spec,
                attempt,
                started,
                error.category.value,
                status=error.status_code,
                code=error.code,
            )

            if (
                error.code == TIMESTAMP_OUTSIDE_RECV_WINDOW
                and spec.signed
                and self._resync_on_clock_skew
                and not resynced
            ):
                resynced = True
                try:
                    await self.sync_time()
                except TransientError as e:
                    # the rejected request itself was never executed
                    raise TransientError(
                        f"Clock resync after {error.code} failed: {e}",
                        e.code,
                        status_code=e.status_code,
                        outcome_unknown=False,
                    ) from e
                log_retry_scheduled(
                    endpoint_id=spec.id, attempt=attempt + 1, delay=0.0, reason="clock_skew"
                )
                continue

            delay = self._retry_delay(spec, error, attempt)
            if delay is None:
                raise error
            log_retry_scheduled(
                endpoint_id=spec.id,
                attempt=attempt + 1,
                delay=delay,
                reason=error.category.value,
            )
            await self._sleep(delay)

    async def close(self) -> None:
        """Stop all attempt loops. Pending backoffs end with ``ConfigError``."""
        if self._closed.is_set():
            return
        self._closed.set()
        logger.debug("Request dispatcher closed")

    async def sync_time(self) -> int:
        """Align the clock with the exchange's server time.

        Returns:
            The new clock offset in milliseconds

        Raises:
            TransientError: The time request itself failed in transit
            ApiError: The exchange answered with an error
        """
        self._ensure_open()
        started = time.perf_counter()
        before = self._clock.local_ms()
        try:
            response = await self._http.request("GET", SERVER_TIME_PATH)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            error = self._transport_error(SERVER_TIME, e)
            self._record(SERVER_TIME, 1, started, error.category.value)
            raise error from e
        after = self._clock.local_ms()
        if not response.ok or not isinstance(response.data, dict):
            error = self._api_error(response)
            self._record(
                SERVER_TIME,
                1,
                started,
                error.category.value,
                status=error.status_code,
                code=error.code,
            )
            raise error
        self._record(SERVER_TIME, 1, started, "ok", status=response.status)
        return self._clock.sync(int(response.data["serverTime"]), (before + after) // 2)

    async def _send(self, spec: RestEndpointSpec, params: Params | None) -> HTTPResponse:
        headers: dict[str, str] = {}
        if spec.security.needs_key:
            assert self._signer is not None
            headers[API_KEY_HEADER] = self._signer.api_key

        if spec.signed:
            assert self._signer is not None
            signed = SignedRequest.build(
                self._signer,
                spec.method,
                spec.path,
                params,
                timestamp=self._clock.now_ms(),
                recv_window=self._recv_window,
            )
            query = signed.query
        else:
            query = canonical_query(params)

        if spec.method is HttpMethod.POST:
            return await self._http.request(
                spec.method.value,
                spec.path,
                body=query or None,
                headers=headers,
                wait_throttle=False,
            )
        return await self._http.request(
            spec.method.value,
            spec.path,
            query=query or None,
            headers=headers,
            wait_throttle=False,
        )

    def _ensure_open(self) -> None:
        if self._closed.is_set():
            raise ConfigError("Client is closed")

    async def _backoff(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, returning early on ``close()``."""
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._closed.wait(), timeout=delay)

    def _retry_delay(self, spec: RestEndpointSpec, error: ApiError, attempt: int) -> float | None:
        if attempt >= self._retry.attempts_for(error.category):
            return None
        if isinstance(error, RateLimitError):
            if error.retry_after is not None and error.retry_after > self._retry.max_rate_limit_wait:
                return None
            return self._retry.rate_limit_backoff(attempt, error.retry_after)
        if isinstance(error, TransientError):
            if not spec.idempotent:
                return None
            return self._retry.backoff(attempt)
        return None

    def _transport_error(self, spec: RestEndpointSpec, exc: BaseException) -> TransientError:
        # A refused connection never reached the exchange.
        never_sent = isinstance(exc, aiohttp.ClientConnectorError)
        message = f"{spec.method.value} {spec.path} failed: {type(exc).__name__}: {exc}"
        return TransientError(message, outcome_unknown=not never_sent)

    def _api_error(self, response: HTTPResponse) -> ApiError:
        data = response.data
        code: int | None = None
        msg: str | None = None
        if isinstance(data, Mapping):
            raw_code = data.get("code")
            try:
                code = int(raw_code) if raw_code is not None else None
            except (TypeError, ValueError):
                code = None
            msg = data.get("msg")
        message = msg or f"HTTP {response.status}" + (f": {data}" if isinstance(data, str) else "")

        category = classify_error(response.status, code)
        if category is ErrorCategory.RATE_LIMIT:
            return RateLimitError(
                message,
                code,
                status_code=response.status,
                retry_after=parse_retry_after(response.headers),
            )
        if category is ErrorCategory.TRANSIENT:
            return TransientError(
                message,
                code,
                status_code=response.status,
                outcome_unknown=code is None or code in OUTCOME_UNKNOWN_CODES,
            )
        return error_type_for(category)(message, code, status_code=response.status)

    def _record(
        self,
        spec: RestEndpointSpec,
        attempt: int,
        started: float,
        outcome: str,
        *,
        status: int | None = None,
        code: int | None = None,
    ) -> None:
        emit(
            RequestAttempt(
                endpoint_id=spec.id,
                method=spec.method.value,
                path=spec.path,
                attempt=attempt,
                latency_ms=round((time.perf_counter() - started) * 1000, 3),
                outcome=outcome,
                status_code=status,
                error_code=code,
            ),
            self._hooks,
        )
