"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging.context import get_log_context
from core.security.sanitize import sanitize_url


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Sanitizes URLs to remove pre-signed credentials before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # HTTP tracking
        "url",
        "api_method",
        "api_endpoint",
        "http_status",
        "attempt",
        "max_attempts",
        "delay_seconds",
        "duration_ms",
        # Errors
        "error_category",
        "error_message",
        # Transfer tracking
        "state",
        "part_number",
        "parts_total",
        "bytes_read",
        "bytes_uploaded",
        "total_bytes",
        "parallelism",
        "chunk_size",
        "file_path",
        "release_asset_id",
        "download_url",
        "upload_mode",
    ]

    # Fields that contain URLs and should be sanitized
    URL_FIELDS = ["url", "download_url"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        """Sanitize value if it's a URL field."""
        if key in self.URL_FIELDS and isinstance(value, str):
            return sanitize_url(value)
        return value

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with sanitized URLs."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Inject context variables
        for key, value in get_log_context().items():
            if value:
                log_entry[key] = value

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes the asset key when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]

        if ctx["asset_key"]:
            parts.append(f"[{ctx['asset_key']}]")

        prefix = " - ".join(parts)
        message = f"{prefix} - {record.getMessage()}"

        if record.exc_info and record.levelno >= logging.ERROR:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message
