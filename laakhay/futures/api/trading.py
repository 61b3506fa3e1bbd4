"""Order entry and order queries (signed).

``new_order`` is never resent by the dispatcher. When it raises
``TransientError`` with ``outcome_unknown`` set, reconcile with
``query_order`` (by ``new_client_order_id``) before placing again.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pydantic

from ..auth.signer import encode_value
from ..core.config import MAX_BATCH_ORDERS
from ..core.enums import ErrorCategory
from ..core.exceptions import ApiError, ConfigError, error_type_for
from ..models import CancelAllResult, NewOrderRequest, Order, UserTrade
from ..runtime.rest.dispatcher import RequestDispatcher
from ..runtime.rest.retry import classify_error
from . import endpoints as ep


class TradingAPI:
    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def new_order(self, order: NewOrderRequest) -> Order:
        return await self._dispatcher.call(ep.NEW_ORDER, order.to_params(), Order)

    async def cancel_order(
        self,
        symbol: str,
        *,
        order_id: int | None = None,
        orig_client_order_id: str | None = None,
    ) -> Order:
        params = _order_ref(symbol, order_id, orig_client_order_id)
        return await self._dispatcher.call(ep.CANCEL_ORDER, params, Order)

    async def cancel_all_orders(self, symbol: str) -> CancelAllResult:
        return await self._dispatcher.call(
            ep.CANCEL_ALL_ORDERS, {"symbol": symbol.upper()}, CancelAllResult
        )

    async def query_order(
        self,
        symbol: str,
        *,
        order_id: int | None = None,
        orig_client_order_id: str | None = None,
    ) -> Order:
        params = _order_ref(symbol, order_id, orig_client_order_id)
        return await self._dispatcher.call(ep.QUERY_ORDER, params, Order)

    async def open_orders(self, symbol: str | None = None) -> list[Order]:
        params = {"symbol": symbol.upper()} if symbol else None
        return await self._dispatcher.call(ep.OPEN_ORDERS, params, list[Order])

    async def all_orders(
        self,
        symbol: str,
        *,
        order_id: int | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> list[Order]:
        params = {
            "symbol": symbol.upper(),
            "orderId": order_id,
            "startTime": start_time,
            "endTime": end_time,
            "limit": limit,
        }
        return await self._dispatcher.call(ep.ALL_ORDERS, params, list[Order])

    async def user_trades(
        self,
        symbol: str,
        *,
        start_time: int | None = None,
        end_time: int | None = None,
        from_id: int | None = None,
        limit: int | None = None,
    ) -> list[UserTrade]:
        params = {
            "symbol": symbol.upper(),
            "startTime": start_time,
            "endTime": end_time,
            "fromId": from_id,
            "limit": limit,
        }
        return await self._dispatcher.call(ep.USER_TRADES, params, list[UserTrade])

    async def batch_orders(self, orders: Sequence[NewOrderRequest]) -> list[Order | ApiError]:
        """Place up to five orders in one request.

        Results follow request order. A rejected order yields its ``ApiError``
        in place of an ``Order`` instead of raising. Like ``new_order`` the
        batch is never resent.
        """
        if not 0 < len(orders) <= MAX_BATCH_ORDERS:
            raise ConfigError(
                f"batch_orders takes 1 to {MAX_BATCH_ORDERS} orders, got {len(orders)}"
            )
        batch = [
            {key: encode_value(value) for key, value in order.to_params().items()}
            for order in orders
        ]
        data = await self._dispatcher.execute(ep.BATCH_ORDERS, {"batchOrders": batch})
        if not isinstance(data, list) or len(data) != len(orders):
            raise ApiError(
                f"Unexpected response shape from {ep.BATCH_ORDERS.id}",
                category=ErrorCategory.UNKNOWN,
            )
        return [_batch_result(item) for item in data]

    async def force_orders(
        self,
        symbol: str | None = None,
        *,
        auto_close_type: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> list[Order]:
        """Liquidation (``LIQUIDATION``) and ADL (``ADL``) orders of this account."""
        params = {
            "symbol": symbol.upper() if symbol else None,
            "autoCloseType": auto_close_type,
            "startTime": start_time,
            "endTime": end_time,
            "limit": limit,
        }
        return await self._dispatcher.call(ep.FORCE_ORDERS, params, list[Order])


def _order_ref(symbol: str, order_id: int | None, client_id: str | None) -> dict[str, Any]:
    if order_id is None and client_id is None:
        raise ConfigError("Either order_id or orig_client_order_id is required")
    return {"symbol": symbol.upper(), "orderId": order_id, "origClientOrderId": client_id}


def _batch_result(item: Any) -> Order | ApiError:
    if isinstance(item, dict) and "orderId" not in item and "code" in item:
        code = item.get("code")
        category = classify_error(400, code)
        return error_type_for(category)(str(item.get("msg", "")), code)
    try:
        return Order.model_validate(item)
    except pydantic.ValidationError as e:
        raise ApiError(
            f"Unexpected batch order entry: {e.error_count()} error(s)",
            category=ErrorCategory.UNKNOWN,
        ) from e
