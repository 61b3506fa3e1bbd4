"""Core components."""

from .enums import (
    ConnectionState,
    ErrorCategory,
    HttpMethod,
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
from .exceptions import (
    ApiError,
    AuthError,
    ConfigError,
    FuturesError,
    RateLimitError,
    SessionExpiredError,
    StreamError,
    TransientError,
    ValidationError,
    error_type_for,
)

__all__ = [
    "ConnectionState",
    "ErrorCategory",
    "HttpMethod",
    "KlineInterval",
    "MarginType",
    "OrderSide",
    "OrderType",
    "PositionMarginAction",
    "PositionSide",
    "Security",
    "SessionState",
    "TimeInForce",
    "WorkingType",
    "FuturesError",
    "ConfigError",
    "ApiError",
    "AuthError",
    "ValidationError",
    "RateLimitError",
    "TransientError",
    "StreamError",
    "SessionExpiredError",
    "error_type_for",
]
