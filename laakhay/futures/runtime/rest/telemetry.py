"""Structured logging and metric hooks for REST attempts.

Every attempt made by the dispatcher is described by a ``RequestAttempt``
record, logged here and handed to any registered hooks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestAttempt:
    """Outcome of one request attempt."""

    endpoint_id: str
    method: str
    path: str
    attempt: int
    latency_ms: float
    outcome: str  # "ok" or an ErrorCategory value
    status_code: int | None = None
    error_code: int | None = None


AttemptHook = Callable[[RequestAttempt], None]


def log_request_attempt(record: RequestAttempt) -> None:
    """Log one request attempt."""
    level = logging.DEBUG if record.outcome == "ok" else logging.WARNING
    logger.log(level, "rest_request_attempt", extra=asdict(record))


def log_retry_scheduled(
    *,
    endpoint_id: str,
    attempt: int,
    delay: float,
    reason: str,
) -> None:
    """Log a retry decision.

    Args:
        endpoint_id: Endpoint identifier
        attempt: Number of the attempt about to be made
        delay: Seconds slept before it
        reason: Error category or condition that caused the retry
    """
    logger.info(
        "rest_retry_scheduled",
        extra={
            "endpoint_id": endpoint_id,
            "attempt": attempt,
            "delay": round(delay, 3),
            "reason": reason,
        },
    )


def emit(record: RequestAttempt, hooks: list[AttemptHook]) -> None:
    log_request_attempt(record)
    for hook in hooks:
        try:
            hook(record)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Attempt hook {hook!r} failed: {e}")
