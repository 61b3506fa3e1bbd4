"""REST runtime: HTTP transport, signing envelope, dispatch and retry."""

from .dispatcher import RequestDispatcher
from .endpoint import RestEndpointSpec
from .http_client import HTTPClient, HTTPResponse
from .request import SignedRequest
from .retry import RetryPolicy, classify_error, parse_retry_after
from .telemetry import RequestAttempt

__all__ = [
    "HTTPClient",
    "HTTPResponse",
    "RequestAttempt",
    "RequestDispatcher",
    "RestEndpointSpec",
    "RetryPolicy",
    "SignedRequest",
    "classify_error",
    "parse_retry_after",
]
