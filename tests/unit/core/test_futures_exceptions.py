"""Unit tests for the exception hierarchy."""

import pytest

from laakhay.futures.core.enums import ErrorCategory
from laakhay.futures.core.exceptions import (
    ApiError,
    AuthError,
    ConfigError,
    FuturesError,
    RateLimitError,
    SessionExpiredError,
    StreamError,
    TransientError,
    ValidationError,
    error_type_for,
)


def test_all_errors_share_base():
    """Test every error derives from FuturesError."""
    for exc_type in (ConfigError, ApiError, StreamError, SessionExpiredError):
        assert issubclass(exc_type, FuturesError)
    assert issubclass(SessionExpiredError, StreamError)


def test_api_error_str_includes_code():
    """Test str() includes the code."""
    assert str(ApiError("Unknown order sent.", -2011)) == "(-2011) Unknown order sent."
    assert str(ApiError("boom")) == "boom"


def test_api_error_repr():
    """Test repr shows code, category and status."""
    err = ValidationError("Bad symbol", -1121, status_code=400)
    text = repr(err)
    assert "ValidationError" in text
    assert "-1121" in text
    assert "'validation'" in text


@pytest.mark.parametrize(
    ("exc_type", "category"),
    [
        (AuthError, ErrorCategory.AUTH),
        (ValidationError, ErrorCategory.VALIDATION),
        (RateLimitError, ErrorCategory.RATE_LIMIT),
        (TransientError, ErrorCategory.TRANSIENT),
        (ApiError, ErrorCategory.UNKNOWN),
    ],
)
def test_category_mapping(exc_type, category):
    """Test each category maps to its exception type."""
    assert exc_type("x").category is category
    assert error_type_for(category) is exc_type


def test_explicit_category_overrides_default():
    """Test an explicit category overrides the class default."""
    assert ApiError("x", category=ErrorCategory.TRANSIENT).category is ErrorCategory.TRANSIENT


def test_retryable_categories():
    """Test which categories are retryable."""
    assert ErrorCategory.RATE_LIMIT.retryable
    assert ErrorCategory.TRANSIENT.retryable
    assert not ErrorCategory.AUTH.retryable
    assert not ErrorCategory.VALIDATION.retryable
    assert not ErrorCategory.UNKNOWN.retryable


def test_rate_limit_defaults():
    """Test RateLimitError defaults."""
    err = RateLimitError("Too many requests", retry_after=2.5)
    assert err.status_code == 429
    assert err.retry_after == 2.5


def test_transient_outcome_flag():
    """Test TransientError carries outcome_unknown."""
    assert not TransientError("x").outcome_unknown
    assert TransientError("x", outcome_unknown=True).outcome_unknown


def test_stream_error_keeps_endpoint():
    """Test StreamError keeps its endpoint id."""
    err = SessionExpiredError("gone", "user-data")
    assert err.endpoint_id == "user-data"
    assert str(err) == "gone"
