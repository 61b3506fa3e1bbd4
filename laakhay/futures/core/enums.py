"""Core enumerations shared by the REST and streaming runtimes.

Design Decisions:
    - String enums: values are the exchange's own spelling where one exists,
      so they can be written straight onto the wire.
    - State enums are plain value enums; transitions are owned by the
      component that holds the state (transport, session manager).
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Classification of a failed REST call; drives retry policy."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Whether a retry can ever succeed with the same input."""
        return self in (ErrorCategory.RATE_LIMIT, ErrorCategory.TRANSIENT)


class Security(str, Enum):
    """Authentication required by a REST endpoint."""

    NONE = "none"
    API_KEY = "api_key"  # key header only (user data stream management)
    SIGNED = "signed"  # key header + timestamp + signature

    @property
    def needs_key(self) -> bool:
        return self is not Security.NONE


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class ConnectionState(str, Enum):
    """Lifecycle of a streaming endpoint.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DEGRADED -> RECONNECTING -> CONNECTED
    Any state -> CLOSED on explicit shutdown (terminal).
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class SessionState(str, Enum):
    """Lifecycle of the user data stream session key."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    RENEWING = "renewing"
    EXPIRED = "expired"
    CLOSED = "closed"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"
    STOP = "STOP"
    STOP_MARKET = "STOP_MARKET"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_MARKET = "TAKE_PROFIT_MARKET"
    TRAILING_STOP_MARKET = "TRAILING_STOP_MARKET"


class TimeInForce(str, Enum):
    GTC = "GTC"  # Good till cancel
    IOC = "IOC"  # Immediate or cancel
    FOK = "FOK"  # Fill or kill
    GTX = "GTX"  # Good till crossing (post only)


class PositionSide(str, Enum):
    BOTH = "BOTH"
    LONG = "LONG"
    SHORT = "SHORT"


class WorkingType(str, Enum):
    MARK_PRICE = "MARK_PRICE"
    CONTRACT_PRICE = "CONTRACT_PRICE"


class MarginType(str, Enum):
    ISOLATED = "ISOLATED"
    CROSSED = "CROSSED"


class PositionMarginAction(int, Enum):
    """``type`` of an isolated margin change."""

    ADD = 1
    REDUCE = 2


class KlineInterval(str, Enum):
    """Kline intervals accepted by the futures REST and stream APIs."""

    M1 = "1m"
    M3 = "3m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H2 = "2h"
    H4 = "4h"
    H6 = "6h"
    H8 = "8h"
    H12 = "12h"
    D1 = "1d"
    D3 = "3d"
    W1 = "1w"
    MO1 = "1M"
