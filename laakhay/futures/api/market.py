"""Public market data calls."""

from __future__ import annotations

from typing import Any

from ..core.enums import KlineInterval
from ..models import ExchangeInfo, Kline, MarkPrice, OrderBook, PriceTicker, Ticker24hr, Trade
from ..runtime.rest.dispatcher import RequestDispatcher
from . import endpoints as ep


class MarketAPI:
    """Unauthenticated market data. Works on a client without credentials."""

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def ping(self) -> None:
        await self._dispatcher.execute(ep.PING)

    async def server_time(self) -> int:
        """Exchange time in milliseconds."""
        data = await self._dispatcher.execute(ep.SERVER_TIME)
        return int(data["serverTime"])

    async def exchange_info(self) -> ExchangeInfo:
        return await self._dispatcher.call(ep.EXCHANGE_INFO, None, ExchangeInfo)

    async def depth(self, symbol: str, limit: int | None = None) -> OrderBook:
        params = {"symbol": symbol.upper(), "limit": limit}
        return await self._dispatcher.call(ep.DEPTH, params, OrderBook)

    async def trades(self, symbol: str, limit: int | None = None) -> list[Trade]:
        params = {"symbol": symbol.upper(), "limit": limit}
        return await self._dispatcher.call(ep.TRADES, params, list[Trade])

    async def klines(
        self,
        symbol: str,
        interval: KlineInterval | str,
        *,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> list[Kline]:
        params = {
            "symbol": symbol.upper(),
            "interval": KlineInterval(interval),
            "startTime": start_time,
            "endTime": end_time,
            "limit": limit,
        }
        return await self._dispatcher.call(ep.KLINES, params, list[Kline])

    async def mark_price(self, symbol: str | None = None) -> MarkPrice | list[MarkPrice]:
        """Mark price and funding for one symbol, or all symbols when omitted."""
        model: Any = MarkPrice if symbol else list[MarkPrice]
        return await self._dispatcher.call(ep.MARK_PRICE, _symbol(symbol), model)

    async def ticker_24hr(self, symbol: str | None = None) -> Ticker24hr | list[Ticker24hr]:
        model: Any = Ticker24hr if symbol else list[Ticker24hr]
        return await self._dispatcher.call(ep.TICKER_24HR, _symbol(symbol), model)

    async def ticker_price(self, symbol: str | None = None) -> PriceTicker | list[PriceTicker]:
        model: Any = PriceTicker if symbol else list[PriceTicker]
        return await self._dispatcher.call(ep.TICKER_PRICE, _symbol(symbol), model)


def _symbol(symbol: str | None) -> dict[str, str] | None:
    return {"symbol": symbol.upper()} if symbol else None
