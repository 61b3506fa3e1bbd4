"""Typed exchange payloads.

Architecture:
    Pydantic v2 models for REST responses and request bodies. All models are
    immutable (frozen=True) and accept the exchange's camelCase field names.

Design Decisions:
    - Exchange strings kept verbatim: prices and quantities stay ``str`` so no
      precision is lost or invented between the wire and the caller.
    - Unknown fields ignored: additive API changes never break parsing.
"""

from .account import (
    AccountInfo,
    AccountPosition,
    AdlQuantile,
    AdlQuantileLevels,
    AssetBalance,
    Balance,
    CommissionRate,
    Income,
    Leverage,
    LeverageBracket,
    LeverageBracketTier,
    PositionMarginChange,
    PositionMarginResult,
    PositionRisk,
)
from .base import FuturesModel
from .market import (
    ExchangeInfo,
    Kline,
    MarkPrice,
    OrderBook,
    PriceTicker,
    RateLimitRule,
    ServerTime,
    SymbolInfo,
    Ticker24hr,
    Trade,
)
from .trading import CancelAllResult, NewOrderRequest, Order, UserTrade
from .user_stream import ListenKey

__all__ = [
    "AccountInfo",
    "AccountPosition",
    "AdlQuantile",
    "AdlQuantileLevels",
    "AssetBalance",
    "Balance",
    "CancelAllResult",
    "CommissionRate",
    "ExchangeInfo",
    "FuturesModel",
    "Income",
    "Kline",
    "ListenKey",
    "Leverage",
    "LeverageBracket",
    "LeverageBracketTier",
    "MarkPrice",
    "NewOrderRequest",
    "Order",
    "OrderBook",
    "PositionMarginChange",
    "PositionMarginResult",
    "PositionRisk",
    "PriceTicker",
    "RateLimitRule",
    "ServerTime",
    "SymbolInfo",
    "Ticker24hr",
    "Trade",
    "UserTrade",
]
