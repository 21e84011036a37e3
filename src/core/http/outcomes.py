"""
Retry classification for HTTP attempts.

Every attempt made by ResilientHttpClient ends in exactly one outcome:

    Success(response)              2xx, returned to the caller
    Terminal(response)             non-retryable non-2xx, returned to the caller
    RetryableRateLimit(response)   429, optionally carrying a Retry-After hint
    RetryableServerError(response) 5xx
    RetryableNetworkError(error)   timeout, DNS failure, connection reset

classify_outcome() is the only place that maps a response or exception onto
these types; the retry loop consumes them uniformly.
"""

import json as jsonlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Union

from multidict import CIMultiDict


@dataclass
class HttpResponse:
    """
    Fully-read HTTP response.

    The body is read before the underlying aiohttp response is released, so
    instances stay usable after the connection goes back to the pool.
    """

    status: int
    content: bytes = b""
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self, limit: Optional[int] = None) -> str:
        body = self.content.decode("utf-8", errors="replace")
        if limit is not None and len(body) > limit:
            return body[:limit] + "..."
        return body

    def json(self) -> Any:
        if not self.content:
            return None
        return jsonlib.loads(self.content)


@dataclass(frozen=True)
class Success:
    response: HttpResponse


@dataclass(frozen=True)
class Terminal:
    response: HttpResponse


@dataclass(frozen=True)
class RetryableRateLimit:
    response: HttpResponse
    delay_hint: Optional[float] = None  # Seconds, from Retry-After


@dataclass(frozen=True)
class RetryableServerError:
    response: HttpResponse


@dataclass(frozen=True)
class RetryableNetworkError:
    error: BaseException


RetryOutcome = Union[
    Success,
    Terminal,
    RetryableRateLimit,
    RetryableServerError,
    RetryableNetworkError,
]


def parse_retry_after(value: Optional[str], now: datetime) -> Optional[float]:
    """
    Parse a Retry-After header value into seconds to wait.

    Integer values are seconds. Anything else is tried as an HTTP date, in
    which case the delay is max(0, date - now).

    Args:
        value: Raw header value (may be None)
        now: Current time, timezone-aware

    Returns:
        Seconds to wait, or None when the header is absent or unparseable
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        return float(max(0, int(value)))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - now).total_seconds())


def classify_outcome(
    response: Optional[HttpResponse] = None,
    error: Optional[BaseException] = None,
    now: Optional[datetime] = None,
) -> RetryOutcome:
    """
    Map the result of one attempt onto a retry outcome.

    Args:
        response: Response received (None if the transport failed)
        error: Transport exception (None if a response was received)
        now: Current time for Retry-After dates (default: utcnow)

    Returns:
        One of the RetryOutcome types
    """
    if error is not None:
        return RetryableNetworkError(error)
    if response is None:
        raise ValueError("classify_outcome needs a response or an error")

    status = response.status
    if 200 <= status < 300:
        return Success(response)
    if status == 429:
        now = now or datetime.now(timezone.utc)
        return RetryableRateLimit(
            response, parse_retry_after(response.headers.get("Retry-After"), now)
        )
    if status >= 500:
        return RetryableServerError(response)
    return Terminal(response)
