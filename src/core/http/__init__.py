"""Resilient HTTP layer shared by every outbound call."""

from core.http.client import ResilientHttpClient
from core.http.outcomes import (
    HttpResponse,
    RetryableNetworkError,
    RetryableRateLimit,
    RetryableServerError,
    RetryOutcome,
    Success,
    Terminal,
    classify_outcome,
    parse_retry_after,
)

__all__ = [
    "ResilientHttpClient",
    "HttpResponse",
    "RetryOutcome",
    "Success",
    "Terminal",
    "RetryableRateLimit",
    "RetryableServerError",
    "RetryableNetworkError",
    "classify_outcome",
    "parse_retry_after",
]
