"""HTTP client helper."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from yarl import URL

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# A response hook may return a delay (seconds) to throttle subsequent requests.
ResponseHook = Callable[["HTTPResponse"], float | None | Awaitable[float | None]]


@dataclass(frozen=True)
class HTTPResponse:
    """Status, headers and decoded body of a completed request."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HTTPClient:
    """Async HTTP client wrapper.

    Sends pre-encoded query strings and bodies verbatim so that signed
    parameters reach the exchange byte-for-byte as they were signed. Non-2xx
    responses are returned, not raised; classification belongs to the caller.
    """

    def __init__(self, base_url: str | None = None, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._response_hooks: list[ResponseHook] = []
        self._throttle_until: float | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create session. Never reopens after ``close()``."""
        if self._closed:
            raise RuntimeError("HTTP client is closed")
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    def add_response_hook(self, hook: ResponseHook) -> None:
        self._response_hooks.append(hook)

    def set_throttle(self, delay: float) -> None:
        """Hold back new requests for ``delay`` seconds (extends, never shortens)."""
        if delay <= 0:
            return
        until = time.monotonic() + delay
        if self._throttle_until is None or until > self._throttle_until:
            self._throttle_until = until

    async def wait_for_throttle(self) -> None:
        if self._throttle_until is None:
            return
        remaining = self._throttle_until - time.monotonic()
        if remaining > 0:
            logger.debug(f"Throttling request for {remaining:.3f}s")
            await asyncio.sleep(remaining)
        self._throttle_until = None

    def build_url(self, path: str, query: str | None = None) -> URL:
        url = path if path.startswith("http") or not self.base_url else f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        return URL(url, encoded=True)

    async def request(
        self,
        method: str,
        path: str,
        *,
        query: str | None = None,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
        wait_throttle: bool = True,
    ) -> HTTPResponse:
        """Send one request and decode its body.

        Signed callers wait for the throttle themselves before signing and pass
        ``wait_throttle=False`` so nothing suspends between signing and sending.

        Raises:
            aiohttp.ClientError: On connection-level failures
            asyncio.TimeoutError: When the request exceeds the timeout
        """
        if wait_throttle:
            await self.wait_for_throttle()

        req_headers = dict(headers or {})
        if body is not None:
            req_headers.setdefault("Content-Type", FORM_CONTENT_TYPE)

        url = self.build_url(path, query)
        async with self.session.request(method, url, data=body, headers=req_headers) as resp:
            text = await resp.text()
            response = HTTPResponse(
                status=resp.status,
                headers=dict(resp.headers),
                data=_decode(text),
            )

        await self._run_hooks(response)
        return response

    async def _run_hooks(self, response: HTTPResponse) -> None:
        for hook in self._response_hooks:
            try:
                result = hook(response)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Response hook {hook!r} failed: {e}")
                continue
            if result:
                self.set_throttle(float(result))

    async def close(self) -> None:
        """Close session. Terminal: later requests raise ``RuntimeError``."""
        self._closed = True
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        await self.close()


def _decode(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
