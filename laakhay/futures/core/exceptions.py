"""Custom exception hierarchy.

Every failure raised by the library derives from ``FuturesError``. REST
failures carry the remote envelope (``code``/``msg``) and the category that
decided whether the dispatcher retried them.
"""

from __future__ import annotations

from .enums import ErrorCategory


class FuturesError(Exception):
    """Base exception for all library errors."""

    pass


class ConfigError(FuturesError):
    """Malformed credentials, parameters or configuration. Never retried."""

    pass


class ApiError(FuturesError):
    """Failed REST call, derived from the response envelope or transport."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        code: int | None = None,
        *,
        status_code: int | None = None,
        category: ErrorCategory | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        if category is not None:
            self.category = category

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"({self.code}) {self.message}"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, "
            f"category={self.category.value!r}, status_code={self.status_code!r})"
        )


class AuthError(ApiError):
    """Remote side rejected the key or signature."""

    category = ErrorCategory.AUTH


class ValidationError(ApiError):
    """Remote side rejected the request semantics."""

    category = ErrorCategory.VALIDATION


class RateLimitError(ApiError):
    """Request weight or order rate limit exceeded."""

    category = ErrorCategory.RATE_LIMIT

    def __init__(
        self,
        message: str,
        code: int | None = None,
        *,
        status_code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, code, status_code=status_code)
        self.retry_after = retry_after


class TransientError(ApiError):
    """Network failure, timeout or remote-side unavailability.

    ``outcome_unknown`` is True when the request may have reached the exchange
    and been executed; callers of non-idempotent operations must reconcile
    through a query call before deciding to resend.
    """

    category = ErrorCategory.TRANSIENT

    def __init__(
        self,
        message: str,
        code: int | None = None,
        *,
        status_code: int | None = None,
        outcome_unknown: bool = False,
    ) -> None:
        super().__init__(message, code, status_code=status_code)
        self.outcome_unknown = outcome_unknown


class StreamError(FuturesError):
    """Streaming connection failure that could not be recovered in time."""

    def __init__(self, message: str, endpoint_id: str | None = None) -> None:
        super().__init__(message)
        self.endpoint_id = endpoint_id


class SessionExpiredError(StreamError):
    """User data session key expired; the private stream is dark until renewed."""

    pass


_CATEGORY_TYPES: dict[ErrorCategory, type[ApiError]] = {
    ErrorCategory.AUTH: AuthError,
    ErrorCategory.VALIDATION: ValidationError,
    ErrorCategory.RATE_LIMIT: RateLimitError,
    ErrorCategory.TRANSIENT: TransientError,
    ErrorCategory.UNKNOWN: ApiError,
}


def error_type_for(category: ErrorCategory) -> type[ApiError]:
    """Exception class raised for a given category."""
    return _CATEGORY_TYPES[category]
