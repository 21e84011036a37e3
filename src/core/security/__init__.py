"""
Security helpers.

Provides:
    - sanitize_url(): Redact signatures and tokens from logged URLs
    - mask_token(): Shorten secrets for display
"""

from core.security.sanitize import SENSITIVE_PARAMS, mask_token, sanitize_url

__all__ = [
    "sanitize_url",
    "mask_token",
    "SENSITIVE_PARAMS",
]
