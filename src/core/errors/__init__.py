"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- UploaderError hierarchy for typed exceptions
- HTTP status classification
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base classes
    UploaderError,
    PermanentError,
    TransientError,
    # Configuration errors
    ConfigurationError,
    FileNotFoundForUploadError,
    ApiError,
    # Authorization errors
    AuthError,
    ForbiddenError,
    # Conflict errors
    ConflictError,
    # Transient errors
    RateLimitExceededError,
    ServerError,
    NetworkError,
    IntegrityTagError,
    PartUploadError,
    # Classification utilities
    classify_http_status,
)

__all__ = [
    "ErrorCategory",
    "UploaderError",
    "PermanentError",
    "TransientError",
    "ConfigurationError",
    "FileNotFoundForUploadError",
    "ApiError",
    "AuthError",
    "ForbiddenError",
    "ConflictError",
    "RateLimitExceededError",
    "ServerError",
    "NetworkError",
    "IntegrityTagError",
    "PartUploadError",
    "classify_http_status",
]
