"""Retry policy and error classification for REST calls."""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass

from ...core.enums import ErrorCategory

# Remote error codes, grouped by how the dispatcher treats them.
AUTH_CODES = frozenset({-1002, -1022, -2008, -2014, -2015})
RATE_LIMIT_CODES = frozenset({-1003, -1015})
TRANSIENT_CODES = frozenset({-1000, -1001, -1006, -1007, -1008})

TIMESTAMP_OUTSIDE_RECV_WINDOW = -1021
LISTEN_KEY_NOT_FOUND = -1125

# The exchange may have executed these before failing. The other transient
# codes (-1001 disconnected, -1008 overloaded) reject the request unprocessed.
OUTCOME_UNKNOWN_CODES = frozenset({-1000, -1006, -1007})


def classify_error(status: int | None, code: int | None) -> ErrorCategory:
    """Map an HTTP status and envelope code to an error category."""
    if code in AUTH_CODES or status in (401, 403):
        return ErrorCategory.AUTH
    if code in RATE_LIMIT_CODES or status in (418, 429):
        return ErrorCategory.RATE_LIMIT
    if code in TRANSIENT_CODES or (status is not None and status >= 500):
        return ErrorCategory.TRANSIENT
    if code is not None and status is not None and 400 <= status < 500:
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Seconds requested by a ``Retry-After`` header, if any."""
    if not headers:
        return None
    for name, value in headers.items():
        if name.lower() == "retry-after":
            try:
                return max(0.0, float(value))
            except (TypeError, ValueError):
                return None
    return None


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries with exponential backoff and jitter.

    ``max_attempts`` counts the first attempt. Rate-limit retries honour the
    remote ``Retry-After`` hint; a hint above ``max_rate_limit_wait`` is
    surfaced to the caller instead of slept through.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: float = 0.2  # +/-20% jitter to avoid thundering herds
    rate_limit_max_attempts: int = 3
    rate_limit_delay: float = 1.0
    max_rate_limit_wait: float = 60.0

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = min(self.base_delay * (2 ** max(attempt - 1, 0)), self.max_delay)
        factor = random.uniform(1 - self.jitter, 1 + self.jitter)
        return max(0.0, delay * factor)

    def rate_limit_backoff(self, attempt: int, retry_after: float | None) -> float:
        """Delay before a rate-limit retry; never shorter than ``retry_after``."""
        if retry_after is not None:
            return retry_after
        delay = min(self.rate_limit_delay * (2 ** max(attempt - 1, 0)), self.max_delay)
        return delay * random.uniform(1, 1 + self.jitter)

    def attempts_for(self, category: ErrorCategory) -> int:
        if category is ErrorCategory.RATE_LIMIT:
            return self.rate_limit_max_attempts
        if category is ErrorCategory.TRANSIENT:
            return self.max_attempts
        return 1
