"""Endpoint catalogue for the USD-M futures REST API.

Each facade method is a thin call over one of these specs; signing,
classification and retries are the dispatcher's job.
"""

from ..core.enums import HttpMethod, Security
from ..runtime.rest.endpoint import RestEndpointSpec

GET, POST, PUT, DELETE = HttpMethod.GET, HttpMethod.POST, HttpMethod.PUT, HttpMethod.DELETE

# Market data (public)
PING = RestEndpointSpec("ping", GET, "/fapi/v1/ping")
SERVER_TIME = RestEndpointSpec("server_time", GET, "/fapi/v1/time")
EXCHANGE_INFO = RestEndpointSpec("exchange_info", GET, "/fapi/v1/exchangeInfo")
DEPTH = RestEndpointSpec("depth", GET, "/fapi/v1/depth")
TRADES = RestEndpointSpec("trades", GET, "/fapi/v1/trades")
KLINES = RestEndpointSpec("klines", GET, "/fapi/v1/klines")
MARK_PRICE = RestEndpointSpec("mark_price", GET, "/fapi/v1/premiumIndex")
TICKER_24HR = RestEndpointSpec("ticker_24hr", GET, "/fapi/v1/ticker/24hr")
TICKER_PRICE = RestEndpointSpec("ticker_price", GET, "/fapi/v1/ticker/price")

# Trading (signed). Placement is never resent automatically; cancel and
# queries address an existing order and are safe to repeat.
NEW_ORDER = RestEndpointSpec("new_order", POST, "/fapi/v1/order", Security.SIGNED)
CANCEL_ORDER = RestEndpointSpec("cancel_order", DELETE, "/fapi/v1/order", Security.SIGNED)
CANCEL_ALL_ORDERS = RestEndpointSpec(
    "cancel_all_orders", DELETE, "/fapi/v1/allOpenOrders", Security.SIGNED
)
QUERY_ORDER = RestEndpointSpec("query_order", GET, "/fapi/v1/order", Security.SIGNED)
OPEN_ORDERS = RestEndpointSpec("open_orders", GET, "/fapi/v1/openOrders", Security.SIGNED)
ALL_ORDERS = RestEndpointSpec("all_orders", GET, "/fapi/v1/allOrders", Security.SIGNED)
USER_TRADES = RestEndpointSpec("user_trades", GET, "/fapi/v1/userTrades", Security.SIGNED)
BATCH_ORDERS = RestEndpointSpec("batch_orders", POST, "/fapi/v1/batchOrders", Security.SIGNED)
FORCE_ORDERS = RestEndpointSpec("force_orders", GET, "/fapi/v1/forceOrders", Security.SIGNED)

# Account (signed)
ACCOUNT_INFO = RestEndpointSpec("account_info", GET, "/fapi/v2/account", Security.SIGNED)
BALANCE = RestEndpointSpec("balance", GET, "/fapi/v2/balance", Security.SIGNED)
POSITION_RISK = RestEndpointSpec("position_risk", GET, "/fapi/v2/positionRisk", Security.SIGNED)
CHANGE_LEVERAGE = RestEndpointSpec(
    "change_leverage", POST, "/fapi/v1/leverage", Security.SIGNED, idempotent=True
)
CHANGE_MARGIN_TYPE = RestEndpointSpec(
    "change_margin_type", POST, "/fapi/v1/marginType", Security.SIGNED, idempotent=True
)
COMMISSION_RATE = RestEndpointSpec(
    "commission_rate", GET, "/fapi/v1/commissionRate", Security.SIGNED
)
INCOME_HISTORY = RestEndpointSpec("income_history", GET, "/fapi/v1/income", Security.SIGNED)
LEVERAGE_BRACKET = RestEndpointSpec(
    "leverage_bracket", GET, "/fapi/v1/leverageBracket", Security.SIGNED
)
ADL_QUANTILE = RestEndpointSpec("adl_quantile", GET, "/fapi/v1/adlQuantile", Security.SIGNED)
# Each call moves margin again.
POSITION_MARGIN = RestEndpointSpec(
    "position_margin", POST, "/fapi/v1/positionMargin", Security.SIGNED
)
POSITION_MARGIN_HISTORY = RestEndpointSpec(
    "position_margin_history", GET, "/fapi/v1/positionMargin/history", Security.SIGNED
)

# User data stream session (API key header only). Creating a key returns
# the account's existing key if one is live, so it is safe to repeat.
CREATE_LISTEN_KEY = RestEndpointSpec(
    "create_listen_key", POST, "/fapi/v1/listenKey", Security.API_KEY, idempotent=True
)
KEEPALIVE_LISTEN_KEY = RestEndpointSpec(
    "keepalive_listen_key", PUT, "/fapi/v1/listenKey", Security.API_KEY
)
CLOSE_LISTEN_KEY = RestEndpointSpec(
    "close_listen_key", DELETE, "/fapi/v1/listenKey", Security.API_KEY
)
