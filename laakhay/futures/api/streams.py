"""Stream (channel) name builders: ``<symbol>@<streamtype>``.

Symbols are lowercased; the exchange echoes channel names back in this
form, which is what frames are routed by.
"""

from __future__ import annotations

from ..core.enums import KlineInterval

ALL_TICKERS = "!ticker@arr"
ALL_MINI_TICKERS = "!miniTicker@arr"
ALL_BOOK_TICKERS = "!bookTicker"
ALL_FORCE_ORDERS = "!forceOrder@arr"

_DEPTH_LEVELS = (5, 10, 20)
_UPDATE_SPEEDS_MS = (100, 250, 500)


def _name(symbol: str, stream: str) -> str:
    symbol = symbol.strip().lower()
    if not symbol:
        raise ValueError("symbol must not be empty")
    return f"{symbol}@{stream}"


def agg_trade(symbol: str) -> str:
    return _name(symbol, "aggTrade")


def trade(symbol: str) -> str:
    return _name(symbol, "trade")


def kline(symbol: str, interval: KlineInterval | str) -> str:
    return _name(symbol, f"kline_{KlineInterval(interval).value}")


def ticker(symbol: str) -> str:
    return _name(symbol, "ticker")


def mini_ticker(symbol: str) -> str:
    return _name(symbol, "miniTicker")


def book_ticker(symbol: str) -> str:
    return _name(symbol, "bookTicker")


def force_order(symbol: str) -> str:
    return _name(symbol, "forceOrder")


def mark_price(symbol: str, *, every_second: bool = False) -> str:
    return _name(symbol, "markPrice@1s" if every_second else "markPrice")


def all_mark_prices(*, every_second: bool = False) -> str:
    return "!markPrice@arr@1s" if every_second else "!markPrice@arr"


def depth(symbol: str, levels: int | None = None, speed_ms: int | None = None) -> str:
    """Diff depth (``levels=None``) or partial book depth stream name."""
    if levels is not None and levels not in _DEPTH_LEVELS:
        raise ValueError(f"levels must be one of {_DEPTH_LEVELS}")
    if speed_ms is not None and speed_ms not in _UPDATE_SPEEDS_MS:
        raise ValueError(f"speed_ms must be one of {_UPDATE_SPEEDS_MS}")
    stream = f"depth{levels}" if levels else "depth"
    if speed_ms is not None and speed_ms != 250:
        stream += f"@{speed_ms}ms"
    return _name(symbol, stream)
