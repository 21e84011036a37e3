"""
Resilient async HTTP client.

Wraps aiohttp with a per-request timeout and the retry policy used by every
control-plane call: 429 honours Retry-After, 5xx and transport failures back
off exponentially with jitter, everything else is returned to the caller.
"""

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import aiohttp
from multidict import CIMultiDict

from core.errors.exceptions import NetworkError, RateLimitExceededError, ServerError
from core.http.outcomes import (
    HttpResponse,
    RetryableNetworkError,
    RetryableRateLimit,
    RetryableServerError,
    RetryOutcome,
    Success,
    Terminal,
    classify_outcome,
)
from core.logging.utilities import LoggedClass
from core.resilience.backoff import BackoffPolicy
from core.security.sanitize import sanitize_url

DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_BACKOFF_MS = 1000
DEFAULT_MAX_BACKOFF_SECONDS = 30.0
DEFAULT_JITTER_SECONDS = 1.0
DEFAULT_TIMEOUT_SECONDS = 60

# Transport failures that are retried
NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)

# Truncation limit for response bodies quoted in errors
ERROR_BODY_LIMIT = 1000


class ResilientHttpClient(LoggedClass):
    """
    Async HTTP client with timeout, status-based retry and backoff.

    This is the single place that implements retry for control-plane
    requests; callers get back the final HttpResponse (2xx or a
    non-retryable 4xx) or an exception once the retry budget is spent.

    Usage:
        async with ResilientHttpClient(base_url="https://api.example.com",
                                       headers={"Authorization": "Bearer ..."}) as http:
            response = await http.request("GET", "actor/v1/whoami")
            if response.ok:
                user = response.json()

    Configuration:
        base_url: Prefix for relative paths (absolute URLs are used as-is)
        headers: Default headers sent with every request
        timeout_seconds: Total timeout per attempt (default: 60)
        max_retries: Total attempts per request (default: 5)
        initial_backoff_ms: First backoff delay, doubled per attempt (default: 1000)
        max_backoff_seconds: Backoff cap (default: 30)
        jitter_seconds: Upper bound of random jitter on 5xx/network retries
    """

    log_component = "http"

    def __init__(
        self,
        base_url: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS,
        max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS,
        jitter_seconds: float = DEFAULT_JITTER_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        rand: Callable[[], float] = random.random,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self.base_url = base_url.rstrip("/") if base_url else None
        self.default_headers = dict(headers or {})
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.initial_backoff_ms = initial_backoff_ms
        self.max_backoff_seconds = max_backoff_seconds
        self.jitter_seconds = jitter_seconds

        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._clock = clock
        self._rand = rand

        super().__init__()

    async def __aenter__(self) -> "ResilientHttpClient":
        """Create session on context enter."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close session on context exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Create aiohttp session if not exists."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.default_headers)
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    def build_url(self, path: str) -> str:
        """Join a relative path onto base_url; absolute URLs pass through."""
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _backoff_policy(self, initial_backoff_ms: int) -> BackoffPolicy:
        base = max(initial_backoff_ms, 0) / 1000
        return BackoffPolicy(
            base_seconds=base,
            cap_seconds=max(self.max_backoff_seconds, base),
            jitter_seconds=self.jitter_seconds,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        data: Any = None,
        params: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        initial_backoff_ms: Optional[int] = None,
    ) -> HttpResponse:
        """
        Execute one logical request, retrying transient failures.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL
            headers: Extra headers for this request
            json: JSON-serializable body
            data: Raw body, or a zero-argument callable returning a fresh
                body for each attempt (needed for multipart forms)
            params: Query parameters
            max_retries: Override total attempts for this request
            initial_backoff_ms: Override first backoff delay for this request

        Returns:
            Final HttpResponse (2xx or non-retryable non-2xx)

        Raises:
            RateLimitExceededError: Still 429 after the last attempt
            ServerError: Still 5xx after the last attempt
            NetworkError: Transport failure on the last attempt
        """
        await self._ensure_session()

        url = self.build_url(path)
        method = method.upper()
        attempts = max_retries if max_retries is not None else self.max_retries
        if attempts < 1:
            raise ValueError("max_retries must be >= 1")
        policy = self._backoff_policy(
            initial_backoff_ms
            if initial_backoff_ms is not None
            else self.initial_backoff_ms
        )

        for attempt in range(1, attempts + 1):
            self._log(
                logging.DEBUG,
                f"{method} {sanitize_url(url)} (attempt {attempt}/{attempts})",
                attempt=attempt,
                max_attempts=attempts,
                api_method=method,
                url=url,
            )

            response: Optional[HttpResponse] = None
            error: Optional[BaseException] = None
            try:
                response = await self._send(method, url, headers, json, data, params)
            except NETWORK_ERRORS as e:
                error = e

            outcome = classify_outcome(response, error, now=self._clock())
            if isinstance(outcome, (Success, Terminal)):
                return outcome.response

            if attempt == attempts:
                raise self._exhausted(outcome, url, attempt)

            delay = self._retry_delay(outcome, policy, attempt)
            self._log(
                logging.WARNING,
                f"{method} {sanitize_url(url)} failed ({self._describe(outcome)}), "
                f"retrying in {delay:.1f}s",
                attempt=attempt,
                max_attempts=attempts,
                api_method=method,
                url=url,
                delay_seconds=round(delay, 3),
                http_status=getattr(getattr(outcome, "response", None), "status", None),
            )
            await self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]],
        json: Any,
        data: Any,
        params: Optional[Dict[str, Any]],
    ) -> HttpResponse:
        """Perform a single attempt and read the whole body."""
        assert self._session is not None  # for mypy
        body = data() if callable(data) else data
        async with self._session.request(
            method,
            url,
            headers=headers,
            json=json,
            data=body,
            params=params,
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        ) as response:
            content = await response.read()
            return HttpResponse(
                status=response.status,
                content=content,
                headers=CIMultiDict(response.headers),
                url=url,
            )

    def _retry_delay(
        self, outcome: RetryOutcome, policy: BackoffPolicy, attempt: int
    ) -> float:
        if isinstance(outcome, RetryableRateLimit):
            if outcome.delay_hint is not None:
                return outcome.delay_hint
            return policy.delay(attempt, with_jitter=False)
        return policy.delay(attempt, with_jitter=True, rand=self._rand)

    @staticmethod
    def _describe(outcome: RetryOutcome) -> str:
        if isinstance(outcome, RetryableNetworkError):
            return f"{type(outcome.error).__name__}: {outcome.error}"
        return f"HTTP {outcome.response.status}"

    @staticmethod
    def _exhausted(outcome: RetryOutcome, url: str, attempts: int) -> Exception:
        safe_url = sanitize_url(url)
        if isinstance(outcome, RetryableRateLimit):
            return RateLimitExceededError(safe_url, attempts)
        if isinstance(outcome, RetryableServerError):
            return ServerError(
                safe_url,
                attempts,
                outcome.response.status,
                outcome.response.text(limit=ERROR_BODY_LIMIT),
            )
        assert isinstance(outcome, RetryableNetworkError)
        return NetworkError(safe_url, attempts, outcome.error)
