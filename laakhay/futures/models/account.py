"""Account, balance and position payloads (signed endpoints)."""

from pydantic import Field

from .base import FuturesModel


class AssetBalance(FuturesModel):
    asset: str
    wallet_balance: str
    unrealized_profit: str | None = None
    margin_balance: str
    maint_margin: str
    initial_margin: str
    available_balance: str
    max_withdraw_amount: str
    update_time: int | None = None


class AccountPosition(FuturesModel):
    symbol: str
    initial_margin: str
    maint_margin: str
    unrealized_profit: str | None = None
    leverage: str | None = None
    isolated: bool | None = None
    entry_price: str | None = None
    position_side: str
    position_amt: str
    notional: str | None = None
    update_time: int | None = None


class AccountInfo(FuturesModel):
    fee_tier: int | None = None
    can_trade: bool | None = None
    update_time: int | None = None
    total_initial_margin: str
    total_maint_margin: str
    total_wallet_balance: str
    total_unrealized_profit: str | None = None
    total_margin_balance: str
    available_balance: str
    max_withdraw_amount: str
    assets: list[AssetBalance] = Field(default_factory=list)
    positions: list[AccountPosition] = Field(default_factory=list)


class Balance(FuturesModel):
    account_alias: str
    asset: str
    balance: str
    cross_wallet_balance: str
    cross_un_pnl: str
    available_balance: str
    max_withdraw_amount: str
    margin_available: bool | None = None
    update_time: int


class PositionRisk(FuturesModel):
    symbol: str
    position_amt: str
    entry_price: str
    mark_price: str
    un_realized_profit: str
    liquidation_price: str
    leverage: str | None = None
    margin_type: str | None = None
    isolated_margin: str | None = None
    position_side: str
    notional: str | None = None
    update_time: int


class Leverage(FuturesModel):
    symbol: str
    leverage: int
    max_notional_value: str


class CommissionRate(FuturesModel):
    symbol: str
    maker_commission_rate: str
    taker_commission_rate: str


class Income(FuturesModel):
    symbol: str
    income_type: str
    income: str
    asset: str
    info: str
    time: int
    tran_id: int
    trade_id: str


class LeverageBracketTier(FuturesModel):
    bracket: int
    initial_leverage: int
    notional_cap: float
    notional_floor: float
    maint_margin_ratio: float
    cum: float


class LeverageBracket(FuturesModel):
    symbol: str
    notional_coef: float | None = None
    brackets: list[LeverageBracketTier] = Field(default_factory=list)


class AdlQuantileLevels(FuturesModel):
    """Queue position 0-4 per side; ``both`` in one-way mode, ``hedge`` in hedge mode."""

    long: int | None = Field(None, alias="LONG")
    short: int | None = Field(None, alias="SHORT")
    both: int | None = Field(None, alias="BOTH")
    hedge: int | None = Field(None, alias="HEDGE")


class AdlQuantile(FuturesModel):
    symbol: str
    adl_quantile: AdlQuantileLevels


class PositionMarginResult(FuturesModel):
    amount: float
    code: int
    msg: str
    action: int = Field(..., alias="type")


class PositionMarginChange(FuturesModel):
    symbol: str
    action: int = Field(..., alias="type")
    delta_type: str | None = None
    amount: str
    asset: str
    time: int
    position_side: str | None = None
