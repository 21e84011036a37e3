"""
Common exception types and error classification for the uploader.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for upload errors
- HTTP status classification
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (e.g., network timeouts, 429/5xx responses, missing ETags)
        AUTH: Authentication or authorization failures, never retried
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., bad configuration, missing file, 4xx responses)
        CONFLICT: Resource already exists and may not be replaced
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class UploaderError(Exception):
    """
    Base exception for all uploader errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error should trigger a retry."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Configuration Errors
# =============================================================================


class PermanentError(UploaderError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid inputs or configuration, raised before any network activity."""

    pass


class FileNotFoundForUploadError(ConfigurationError):
    """Source file does not exist or is not readable."""

    def __init__(self, file_path: str, cause: Optional[Exception] = None):
        super().__init__(
            f"File does not exist or is not readable: {file_path}",
            cause=cause,
            context={"file_path": file_path},
        )
        self.file_path = file_path


class ApiError(PermanentError):
    """Control-plane call returned a non-retryable, unexpected response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.status_code = status_code


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthError(UploaderError):
    """Caller is not authenticated."""

    category = ErrorCategory.AUTH


class ForbiddenError(AuthError):
    """Caller is authenticated but may not modify the target release."""

    pass


# =============================================================================
# Conflict Errors
# =============================================================================


class ConflictError(UploaderError):
    """Release asset already exists and overwrite is disallowed."""

    category = ErrorCategory.CONFLICT


# =============================================================================
# Transient Errors (retried until the budget is exhausted)
# =============================================================================


class TransientError(UploaderError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class RateLimitExceededError(TransientError):
    """Still rate limited (429) after exhausting retries."""

    def __init__(self, url: str, attempts: int):
        super().__init__(
            f"Rate limited by {url} after {attempts} attempts",
            context={"url": url, "attempts": attempts},
        )
        self.url = url
        self.attempts = attempts


class ServerError(TransientError):
    """Server kept answering 5xx after exhausting retries."""

    def __init__(self, url: str, attempts: int, status_code: int, body: str):
        super().__init__(
            f"Server error ({status_code}) from {url} after {attempts} attempts: {body}",
            context={"url": url, "attempts": attempts, "http_status": status_code},
        )
        self.url = url
        self.attempts = attempts
        self.status_code = status_code
        self.body = body


class NetworkError(TransientError):
    """Transport failure (timeout, DNS, connection reset) after exhausting retries."""

    def __init__(self, url: str, attempts: int, cause: Exception):
        super().__init__(
            f"Network error calling {url} after {attempts} attempts: "
            f"{type(cause).__name__}: {cause}",
            cause=cause,
            context={"url": url, "attempts": attempts},
        )
        self.url = url
        self.attempts = attempts


class IntegrityTagError(TransientError):
    """Storage accepted a part but returned no usable ETag."""

    def __init__(self, part_number: int, received: Optional[str]):
        super().__init__(
            f"Invalid ETag received for part {part_number}: {received!r}",
            context={"part_number": part_number},
        )
        self.part_number = part_number
        self.received = received


class PartUploadError(TransientError):
    """A single part could not be transferred."""

    def __init__(
        self,
        part_number: int,
        message: str,
        attempts: Optional[int] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            cause=cause,
            context={"part_number": part_number, "attempts": attempts},
        )
        self.part_number = part_number
        self.attempts = attempts
        self.status_code = status_code


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Classify HTTP status code into error category.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorCategory
    """
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 403:
        return ErrorCategory.AUTH

    if status_code == 409:
        return ErrorCategory.CONFLICT

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN
