"""Market data payloads (public endpoints)."""

from typing import Any

from pydantic import Field, model_validator

from .base import FuturesModel


class ServerTime(FuturesModel):
    server_time: int


class PriceTicker(FuturesModel):
    symbol: str
    price: str
    time: int | None = None


class MarkPrice(FuturesModel):
    symbol: str
    mark_price: str
    index_price: str
    estimated_settle_price: str | None = None
    last_funding_rate: str
    next_funding_time: int
    interest_rate: str | None = None
    time: int


class Ticker24hr(FuturesModel):
    symbol: str
    price_change: str
    price_change_percent: str
    weighted_avg_price: str
    last_price: str
    last_qty: str
    open_price: str
    high_price: str
    low_price: str
    volume: str
    quote_volume: str
    open_time: int
    close_time: int
    first_id: int
    last_id: int
    count: int


class OrderBook(FuturesModel):
    """Depth snapshot; levels are ``(price, quantity)`` string pairs."""

    last_update_id: int
    event_time: int | None = Field(default=None, alias="E")
    transaction_time: int | None = Field(default=None, alias="T")
    bids: list[tuple[str, str]]
    asks: list[tuple[str, str]]

    @property
    def best_bid(self) -> tuple[str, str] | None:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> tuple[str, str] | None:
        return self.asks[0] if self.asks else None


class Trade(FuturesModel):
    id: int
    price: str
    qty: str
    quote_qty: str
    time: int
    is_buyer_maker: bool


class Kline(FuturesModel):
    """One kline row. The exchange sends these as positional arrays."""

    open_time: int
    open: str
    high: str
    low: str
    close: str
    volume: str
    close_time: int
    quote_asset_volume: str
    number_of_trades: int
    taker_buy_base_asset_volume: str
    taker_buy_quote_asset_volume: str

    @model_validator(mode="before")
    @classmethod
    def _from_row(cls, data: Any) -> Any:
        if isinstance(data, list | tuple):
            names = (
                "open_time",
                "open",
                "high",
                "low",
                "close",
                "volume",
                "close_time",
                "quote_asset_volume",
                "number_of_trades",
                "taker_buy_base_asset_volume",
                "taker_buy_quote_asset_volume",
            )
            if len(data) < len(names):
                raise ValueError(f"kline row has {len(data)} fields, expected {len(names)}")
            return dict(zip(names, data, strict=False))
        return data


class RateLimitRule(FuturesModel):
    rate_limit_type: str
    interval: str
    interval_num: int
    limit: int


class SymbolInfo(FuturesModel):
    symbol: str
    status: str
    base_asset: str
    quote_asset: str
    margin_asset: str
    price_precision: int
    quantity_precision: int
    filters: list[dict[str, Any]] = Field(default_factory=list)
    order_types: list[str] = Field(default_factory=list)
    time_in_force: list[str] = Field(default_factory=list)


class ExchangeInfo(FuturesModel):
    timezone: str
    server_time: int
    rate_limits: list[RateLimitRule] = Field(default_factory=list)
    symbols: list[SymbolInfo] = Field(default_factory=list)

    def symbol(self, name: str) -> SymbolInfo | None:
        name = name.upper()
        return next((s for s in self.symbols if s.symbol == name), None)
