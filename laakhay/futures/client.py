"""Futures client: REST facades plus managed streams.

Architecture:
    FuturesClient wires one ``HTTPClient`` + ``RequestDispatcher`` pair (shared
    by every REST facade) and one ``StreamManager`` (shared by every stream
    subscription). With credentials it also owns a ``UserDataSessionManager``
    backing the private stream.

Example:
    >>> async with FuturesClient.from_env(testnet=True) as client:
    ...     ticker = await client.market.ticker_price("BTCUSDT")
    ...     async with await client.subscribe(streams.agg_trade("BTCUSDT")) as sub:
    ...         async for event in sub:
    ...             print(event.data)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .api import AccountAPI, MarketAPI, TradingAPI, UserStreamAPI
from .auth import Clock, Credentials, Signer
from .core.config import (
    DEFAULT_RECV_WINDOW_MS,
    MAX_STREAMS_PER_CONNECTION,
    get_rest_base_url,
    get_ws_base_url,
)
from .core.exceptions import ConfigError
from .runtime.rest import HTTPClient, RequestDispatcher, RetryPolicy
from .runtime.ws import (
    SessionConfig,
    StreamManager,
    Subscription,
    TransportConfig,
    UserDataSessionManager,
)
from .runtime.ws.events import ErrorCallback, EventCallback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    recv_window: int = DEFAULT_RECV_WINDOW_MS
    http_timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    transport: TransportConfig = field(default_factory=TransportConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    max_streams_per_connection: int = MAX_STREAMS_PER_CONNECTION
    queue_size: int = 1000
    sync_time_on_start: bool = False


class FuturesClient:
    """USD-M futures client.

    Without credentials only market data and public streams are available;
    authenticated calls raise ``ConfigError`` before anything is sent.
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        *,
        testnet: bool = False,
        base_url: str | None = None,
        ws_url: str | None = None,
        config: ClientConfig | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.base_url = base_url or get_rest_base_url(testnet)
        self.ws_url = ws_url or get_ws_base_url(testnet)
        self._credentials = credentials

        self._http = HTTPClient(self.base_url, timeout=self.config.http_timeout)
        self._dispatcher = RequestDispatcher(
            self._http,
            signer=Signer(credentials) if credentials else None,
            clock=Clock(),
            recv_window=self.config.recv_window,
            retry=self.config.retry,
        )
        self.market = MarketAPI(self._dispatcher)
        self.trading = TradingAPI(self._dispatcher)
        self.account = AccountAPI(self._dispatcher)
        self.user_stream = UserStreamAPI(self._dispatcher)

        self._session = (
            UserDataSessionManager(self.user_stream, self.config.session) if credentials else None
        )
        self._streams = StreamManager(
            self.ws_url,
            session=self._session,
            transport_config=self.config.transport,
            max_streams_per_connection=self.config.max_streams_per_connection,
            queue_size=self.config.queue_size,
        )
        self._closed = False

    @classmethod
    def from_env(cls, **kwargs) -> FuturesClient:
        """Build an authenticated client from ``BINANCE_API_KEY`` / ``BINANCE_SECRET_KEY``."""
        return cls(Credentials.from_env(), **kwargs)

    @property
    def has_credentials(self) -> bool:
        return self._credentials is not None

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    @property
    def streams(self) -> StreamManager:
        return self._streams

    @property
    def session(self) -> UserDataSessionManager | None:
        return self._session

    async def sync_time(self) -> int:
        """Align request timestamps with the exchange clock; returns the offset in ms."""
        offset = await self._dispatcher.sync_time()
        logger.info(f"Clock offset set to {offset} ms")
        return offset

    async def subscribe(
        self,
        channel: str,
        *,
        callback: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
        event_types: Iterable[str] | None = None,
    ) -> Subscription:
        """Subscribe to a public stream; see ``api.streams`` for channel names."""
        self._ensure_open()
        return await self._streams.subscribe(
            channel, callback=callback, on_error=on_error, event_types=event_types
        )

    async def subscribe_user_data(
        self,
        *,
        callback: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
        event_types: Iterable[str] | None = None,
    ) -> Subscription:
        """Subscribe to account events (``ORDER_TRADE_UPDATE``, ``ACCOUNT_UPDATE``, ...)."""
        self._ensure_open()
        if self._session is None:
            raise ConfigError("User data streams require API credentials")
        return await self._streams.subscribe_user_data(
            callback=callback, on_error=on_error, event_types=event_types
        )

    async def close(self) -> None:
        """Close streams and the session, cancel pending retries, release HTTP.

        The listen key is deleted before the dispatcher stops.
        """
        if self._closed:
            return
        self._closed = True
        try:
            await self._streams.close()
            if self._session is not None:
                await self._session.close()
        finally:
            await self._dispatcher.close()
            await self._http.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConfigError("Client is closed")

    async def __aenter__(self) -> FuturesClient:
        if self.config.sync_time_on_start:
            await self.sync_time()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        key = self._credentials.masked_key if self._credentials else None
        return f"FuturesClient(base_url={self.base_url!r}, api_key={key!r})"
