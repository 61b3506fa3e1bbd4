"""Order placement request and order/trade payloads."""

from typing import Any

from pydantic import Field, model_validator

from ..core.enums import (
    OrderSide,
    OrderType,
    PositionSide,
    TimeInForce,
    WorkingType,
)
from .base import FuturesModel


class NewOrderRequest(FuturesModel):
    """Parameters of ``POST /fapi/v1/order``.

    Only shape is checked here (required fields per order type); trading
    semantics such as tick sizes or margin are left to the exchange.
    Quantities and prices are strings so they reach the wire unchanged.
    """

    symbol: str = Field(..., min_length=1)
    side: OrderSide
    order_type: OrderType = Field(..., alias="type")
    position_side: PositionSide | None = None
    time_in_force: TimeInForce | None = None
    quantity: str | None = None
    reduce_only: bool | None = None
    price: str | None = None
    new_client_order_id: str | None = None
    stop_price: str | None = None
    close_position: bool | None = None
    activation_price: str | None = None
    callback_rate: str | None = None
    working_type: WorkingType | None = None
    price_protect: bool | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> "NewOrderRequest":
        if self.order_type is OrderType.LIMIT:
            if self.price is None or self.quantity is None:
                raise ValueError("LIMIT orders require price and quantity")
        if self.quantity is None and not self.close_position:
            raise ValueError("quantity is required unless close_position is set")
        return self

    @classmethod
    def limit(
        cls,
        symbol: str,
        side: OrderSide,
        quantity: str,
        price: str,
        time_in_force: TimeInForce = TimeInForce.GTC,
        **kwargs: Any,
    ) -> "NewOrderRequest":
        return cls(
            symbol=symbol,
            side=side,
            order_type=OrderType.LIMIT,
            quantity=quantity,
            price=price,
            time_in_force=time_in_force,
            **kwargs,
        )

    @classmethod
    def market(cls, symbol: str, side: OrderSide, quantity: str, **kwargs: Any) -> "NewOrderRequest":
        return cls(symbol=symbol, side=side, order_type=OrderType.MARKET, quantity=quantity, **kwargs)

    def to_params(self) -> dict[str, Any]:
        """Wire parameters in declaration order, unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Order(FuturesModel):
    symbol: str
    order_id: int
    client_order_id: str
    price: str
    orig_qty: str
    executed_qty: str
    cum_quote: str | None = None
    avg_price: str | None = None
    status: str
    time_in_force: str
    order_type: str = Field(..., alias="type")
    side: str
    position_side: str | None = None
    stop_price: str | None = None
    reduce_only: bool | None = None
    close_position: bool | None = None
    working_type: str | None = None
    price_protect: bool | None = None
    time: int | None = None
    update_time: int | None = None


class CancelAllResult(FuturesModel):
    code: int
    msg: str


class UserTrade(FuturesModel):
    symbol: str
    id: int
    order_id: int
    side: str
    price: str
    qty: str
    realized_pnl: str
    margin_asset: str
    quote_qty: str
    commission: str
    commission_asset: str
    time: int
    position_side: str
    buyer: bool
    maker: bool
