"""
URL sanitization for logs.

Pre-signed part URLs carry credentials in their query string, so every URL
that reaches a log line goes through sanitize_url() first.
"""

from urllib.parse import urlparse, urlunparse

# Query parameters that may contain sensitive tokens
SENSITIVE_PARAMS = {
    "x-amz-signature",
    "x-amz-credential",
    "x-amz-security-token",  # AWS
    "signature",
    "awsaccesskeyid",
    "sig",
    "se",
    "st",
    "sp",
    "sv",
    "sr",  # Azure SAS
    "token",
    "access_token",
    "api_key",
    "apikey",
    "key",
    "secret",
    "password",
    "auth",
    "authorization",
}


def sanitize_url(url: str) -> str:
    """
    Remove sensitive query parameters from URL.

    Preserves the path and structure for debugging while removing
    tokens that could grant access if exposed in logs.

    Args:
        url: URL that may contain sensitive parameters

    Returns:
        URL with sensitive parameters replaced with [REDACTED]

    Examples:
        >>> sanitize_url("https://s3.example.com/part?partNumber=1&X-Amz-Signature=abc")
        'https://s3.example.com/part?partNumber=1&X-Amz-Signature=[REDACTED]'
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    if not parsed.query:
        return url

    sanitized_params = []
    for param in parsed.query.split("&"):
        if "=" in param:
            key, _ = param.split("=", 1)
            if key.lower() in SENSITIVE_PARAMS:
                sanitized_params.append(f"{key}=[REDACTED]")
                continue
        sanitized_params.append(param)

    return urlunparse(parsed._replace(query="&".join(sanitized_params)))


def mask_token(token: str, visible: int = 4) -> str:
    """Mask all but the last few characters of a secret."""
    if not token:
        return ""
    if len(token) <= visible:
        return "*" * len(token)
    return "*" * (len(token) - visible) + token[-visible:]
