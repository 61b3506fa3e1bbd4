"""HMAC-SHA256 request signing.

Canonical form:
    Parameters are URL-encoded in the order the caller supplied them, followed
    by ``recvWindow`` and then ``timestamp`` last. The signature is computed
    over exactly that string and transmitted after it, so identical logical
    requests always sign identically and any reordering after signing is
    detected by the exchange.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Iterable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from ..core.exceptions import ConfigError
from .credentials import Credentials

Params = Mapping[str, Any] | Iterable[tuple[str, Any]]


def encode_value(value: Any) -> str:
    """Render a parameter value the way the exchange expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def ordered_params(params: Params | None) -> list[tuple[str, str]]:
    """Flatten params to encoded (key, value) pairs, dropping ``None`` values."""
    if params is None:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    return [(str(k), encode_value(v)) for k, v in items if v is not None]


def canonical_query(
    params: Params | None,
    *,
    recv_window: int | None = None,
    timestamp: int | None = None,
) -> str:
    """Build the canonical query string that is signed and transmitted.

    Examples:
        >>> canonical_query({"symbol": "BTCUSDT", "side": "BUY"}, recv_window=5000, timestamp=1)
        'symbol=BTCUSDT&side=BUY&recvWindow=5000&timestamp=1'
    """
    pairs = [(k, v) for k, v in ordered_params(params) if k not in ("recvWindow", "timestamp")]
    if recv_window is not None:
        pairs.append(("recvWindow", str(int(recv_window))))
    if timestamp is not None:
        pairs.append(("timestamp", str(int(timestamp))))
    return urlencode(pairs)


def sign(canonical: str, secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of ``canonical`` keyed by ``secret``.

    Raises:
        ConfigError: If the secret is empty or not a string
    """
    if not isinstance(secret, str) or not secret:
        raise ConfigError("Signing secret must be a non-empty string")
    return hmac.new(secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).hexdigest()


class Signer:
    """Signs canonical query strings with a fixed set of credentials."""

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials

    @property
    def api_key(self) -> str:
        return self._credentials.api_key

    def sign(self, canonical: str) -> str:
        return sign(canonical, self._credentials.secret_key)

    def __repr__(self) -> str:
        return f"Signer(api_key={self._credentials.masked_key!r})"
