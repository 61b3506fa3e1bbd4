"""Account state and position settings (signed)."""

from __future__ import annotations

from ..core.enums import MarginType, PositionMarginAction, PositionSide
from ..models import (
    AccountInfo,
    AdlQuantile,
    Balance,
    CommissionRate,
    Income,
    Leverage,
    LeverageBracket,
    PositionMarginChange,
    PositionMarginResult,
    PositionRisk,
)
from ..runtime.rest.dispatcher import RequestDispatcher
from . import endpoints as ep


class AccountAPI:
    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def account_info(self) -> AccountInfo:
        return await self._dispatcher.call(ep.ACCOUNT_INFO, None, AccountInfo)

    async def balance(self) -> list[Balance]:
        return await self._dispatcher.call(ep.BALANCE, None, list[Balance])

    async def position_risk(self, symbol: str | None = None) -> list[PositionRisk]:
        params = {"symbol": symbol.upper()} if symbol else None
        return await self._dispatcher.call(ep.POSITION_RISK, params, list[PositionRisk])

    async def change_leverage(self, symbol: str, leverage: int) -> Leverage:
        params = {"symbol": symbol.upper(), "leverage": leverage}
        return await self._dispatcher.call(ep.CHANGE_LEVERAGE, params, Leverage)

    async def change_margin_type(self, symbol: str, margin_type: MarginType | str) -> None:
        params = {"symbol": symbol.upper(), "marginType": MarginType(margin_type)}
        await self._dispatcher.execute(ep.CHANGE_MARGIN_TYPE, params)

    async def commission_rate(self, symbol: str) -> CommissionRate:
        return await self._dispatcher.call(
            ep.COMMISSION_RATE, {"symbol": symbol.upper()}, CommissionRate
        )

    async def income_history(
        self,
        symbol: str | None = None,
        *,
        income_type: str | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> list[Income]:
        params = {
            "symbol": symbol.upper() if symbol else None,
            "incomeType": income_type,
            "startTime": start_time,
            "endTime": end_time,
            "limit": limit,
        }
        return await self._dispatcher.call(ep.INCOME_HISTORY, params, list[Income])

    async def leverage_bracket(self, symbol: str | None = None) -> list[LeverageBracket]:
        """Notional tiers with their maximum leverage and maintenance ratio."""
        params = {"symbol": symbol.upper()} if symbol else None
        # a single symbol may come back as one object
        result = await self._dispatcher.call(
            ep.LEVERAGE_BRACKET, params, list[LeverageBracket] | LeverageBracket
        )
        return result if isinstance(result, list) else [result]

    async def adl_quantile(self, symbol: str | None = None) -> list[AdlQuantile]:
        params = {"symbol": symbol.upper()} if symbol else None
        return await self._dispatcher.call(ep.ADL_QUANTILE, params, list[AdlQuantile])

    async def position_margin(
        self,
        symbol: str,
        amount: str,
        action: PositionMarginAction | int,
        *,
        position_side: PositionSide | str | None = None,
    ) -> PositionMarginResult:
        """Add or remove isolated margin.

        Not idempotent: a ``TransientError`` with ``outcome_unknown`` set must
        be reconciled through ``position_margin_history`` before retrying.
        """
        params = {
            "symbol": symbol.upper(),
            "positionSide": PositionSide(position_side) if position_side else None,
            "amount": amount,
            "type": PositionMarginAction(action),
        }
        return await self._dispatcher.call(ep.POSITION_MARGIN, params, PositionMarginResult)

    async def position_margin_history(
        self,
        symbol: str,
        *,
        action: PositionMarginAction | int | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int | None = None,
    ) -> list[PositionMarginChange]:
        params = {
            "symbol": symbol.upper(),
            "type": PositionMarginAction(action) if action is not None else None,
            "startTime": start_time,
            "endTime": end_time,
            "limit": limit,
        }
        return await self._dispatcher.call(
            ep.POSITION_MARGIN_HISTORY, params, list[PositionMarginChange]
        )
