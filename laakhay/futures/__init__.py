"""Async client for USD-M perpetual futures.

Quick start:
    >>> from laakhay.futures import FuturesClient, streams
    >>> async with FuturesClient() as client:
    ...     print(await client.market.ticker_price("BTCUSDT"))

Authenticated:
    >>> client = FuturesClient.from_env(testnet=True)
"""

from .api import AccountAPI, MarketAPI, TradingAPI, UserStreamAPI, streams
from .auth import Clock, Credentials, Signer, canonical_query, sign
from .client import ClientConfig, FuturesClient
from .core.enums import (
    ConnectionState,
    ErrorCategory,
    KlineInterval,
    MarginType,
    OrderSide,
    OrderType,
    PositionMarginAction,
    PositionSide,
    Security,
    SessionState,
    TimeInForce,
    WorkingType,
)
from .core.exceptions import (
    ApiError,
    AuthError,
    ConfigError,
    FuturesError,
    RateLimitError,
    SessionExpiredError,
    StreamError,
    TransientError,
    ValidationError,
)
from .models import NewOrderRequest
from .runtime.rest import RetryPolicy
from .runtime.ws import SessionConfig, StreamEvent, Subscription, TransportConfig

__version__ = "0.1.0"

__all__ = [
    "AccountAPI",
    "ApiError",
    "AuthError",
    "ClientConfig",
    "Clock",
    "ConfigError",
    "ConnectionState",
    "Credentials",
    "ErrorCategory",
    "FuturesClient",
    "FuturesError",
    "KlineInterval",
    "MarginType",
    "MarketAPI",
    "NewOrderRequest",
    "OrderSide",
    "OrderType",
    "PositionMarginAction",
    "PositionSide",
    "RateLimitError",
    "RetryPolicy",
    "Security",
    "SessionConfig",
    "SessionExpiredError",
    "SessionState",
    "Signer",
    "StreamError",
    "StreamEvent",
    "Subscription",
    "TimeInForce",
    "TradingAPI",
    "TransientError",
    "TransportConfig",
    "UserStreamAPI",
    "ValidationError",
    "WorkingType",
    "canonical_query",
    "sign",
    "streams",
]
