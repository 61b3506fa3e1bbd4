"""Exchange endpoints and wire constants.

This module centralizes URLs and protocol constants used by the REST and
WebSocket runtimes so the client can stay small and focused.
"""

from __future__ import annotations

# REST base URLs
#  - Production (USD-M perpetuals): fapi.binance.com
#  - Sandbox: testnet.binancefuture.com
REST_BASE_URL = "https://fapi.binance.com"
REST_TESTNET_URL = "https://testnet.binancefuture.com"

# WebSocket base URLs
#  - Combined stream (SUBSCRIBE control frames): wss://<host>/stream
#  - User data stream:                          wss://<host>/ws/<listenKey>
WS_BASE_URL = "wss://fstream.binance.com"
WS_TESTNET_URL = "wss://stream.binancefuture.com"

API_KEY_HEADER = "X-MBX-APIKEY"

# Environment variables read by Credentials.from_env()
API_KEY_ENV = "BINANCE_API_KEY"
SECRET_KEY_ENV = "BINANCE_SECRET_KEY"

DEFAULT_RECV_WINDOW_MS = 5000
MAX_RECV_WINDOW_MS = 60000

# Futures allows at most 200 streams per connection and 10 inbound
# control messages per second.
MAX_STREAMS_PER_CONNECTION = 200
MAX_CONTROL_FRAMES_PER_SECOND = 10

# Orders accepted by one batchOrders request.
MAX_BATCH_ORDERS = 5

# Listen keys expire 60 minutes after the last keepalive.
LISTEN_KEY_VALIDITY_SECONDS = 60 * 60
LISTEN_KEY_KEEPALIVE_SECONDS = 30 * 60


def get_rest_base_url(testnet: bool = False) -> str:
    """Get REST base URL.

    Examples:
        >>> get_rest_base_url()
        'https://fapi.binance.com'
        >>> get_rest_base_url(testnet=True)
        'https://testnet.binancefuture.com'
    """
    return REST_TESTNET_URL if testnet else REST_BASE_URL


def get_ws_base_url(testnet: bool = False) -> str:
    """Get WebSocket base URL.

    Examples:
        >>> get_ws_base_url()
        'wss://fstream.binance.com'
        >>> get_ws_base_url(testnet=True)
        'wss://stream.binancefuture.com'
    """
    return WS_TESTNET_URL if testnet else WS_BASE_URL


def combined_stream_url(ws_base: str) -> str:
    """URL of the multiplexed endpoint that accepts SUBSCRIBE frames."""
    return f"{ws_base.rstrip('/')}/stream"


def user_data_stream_url(ws_base: str, listen_key: str) -> str:
    """URL of the private stream bound to ``listen_key``."""
    return f"{ws_base.rstrip('/')}/ws/{listen_key}"
