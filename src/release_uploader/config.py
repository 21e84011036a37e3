"""
Uploader tuning configuration.

Controls timeouts and retry budgets for control-plane requests and part
uploads. Per-upload inputs (token, release, file) live in
release_uploader.schemas.inputs.UploadInputs.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from core.errors.exceptions import ConfigurationError

# Default config path: config.yaml in the working directory
DEFAULT_CONFIG_PATH = Path("config.yaml")

# Files at or below this size use the stream upload; above it, multipart.
# Storage backends reject multipart sessions below and single PUTs above.
MIN_MULTIPART_UPLOAD_SIZE = 5 * 1024 * 1024


@dataclass
class UploaderConfig:
    """Retry and timeout settings.

    Load with UploaderConfig.load_config(); all fields have defaults.
    """

    # Control-plane requests
    request_timeout_seconds: float = 60.0
    max_retries: int = 5  # Total attempts per request
    initial_backoff_ms: int = 1000
    max_backoff_seconds: float = 30.0
    backoff_jitter_seconds: float = 1.0

    # Direct-to-storage part uploads
    part_max_attempts: int = 7
    part_initial_backoff_seconds: float = 1.0
    part_max_backoff_seconds: float = 16.0
    part_timeout_seconds: float = 300.0

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.part_max_attempts < 1:
            raise ValueError("part_max_attempts must be >= 1")
        if self.request_timeout_seconds <= 0 or self.part_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.initial_backoff_ms < 0 or self.backoff_jitter_seconds < 0:
            raise ValueError("backoff settings must be non-negative")
        if not 0 <= self.part_initial_backoff_seconds <= self.part_max_backoff_seconds:
            raise ValueError(
                "part_initial_backoff_seconds must be between 0 and part_max_backoff_seconds"
            )

    @classmethod
    def load_config(
        cls, config_path: Optional[Union[str, Path]] = None
    ) -> "UploaderConfig":
        """Load configuration from config.yaml and environment variables.

        Configuration priority (highest to lowest):
        1. Environment variables
        2. config.yaml file (under 'uploader:' key)
        3. Dataclass defaults

        Optional env vars (all have defaults):
            UPLOADER_REQUEST_TIMEOUT_SECONDS: Control-plane timeout (default: 60)
            UPLOADER_MAX_RETRIES: Attempts per control-plane request (default: 5)
            UPLOADER_INITIAL_BACKOFF_MS: First retry delay (default: 1000)
            UPLOADER_MAX_BACKOFF_SECONDS: Backoff cap (default: 30)
            UPLOADER_BACKOFF_JITTER_SECONDS: Jitter bound (default: 1)
            UPLOADER_PART_MAX_ATTEMPTS: Attempts per part (default: 7)
            UPLOADER_PART_INITIAL_BACKOFF_SECONDS: First part retry delay (default: 1)
            UPLOADER_PART_MAX_BACKOFF_SECONDS: Part backoff cap (default: 16)
            UPLOADER_PART_TIMEOUT_SECONDS: Timeout per part PUT (default: 300)
        """
        config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

        uploader_data: Dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r") as f:
                    yaml_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in {config_path}: {e}", cause=e
                ) from e
            if not isinstance(yaml_data, dict):
                raise ConfigurationError(f"{config_path} must contain a mapping")
            uploader_data = yaml_data.get("uploader") or {}
            if not isinstance(uploader_data, dict):
                raise ConfigurationError(
                    f"'uploader' in {config_path} must be a mapping"
                )

        def setting(name: str, default: Any, cast: Any) -> Any:
            env_value = os.getenv(f"UPLOADER_{name.upper()}")
            if env_value is not None and env_value != "":
                return cast(env_value)
            return cast(uploader_data.get(name, default))

        try:
            return cls(
                request_timeout_seconds=setting("request_timeout_seconds", 60, float),
                max_retries=setting("max_retries", 5, int),
                initial_backoff_ms=setting("initial_backoff_ms", 1000, int),
                max_backoff_seconds=setting("max_backoff_seconds", 30, float),
                backoff_jitter_seconds=setting("backoff_jitter_seconds", 1, float),
                part_max_attempts=setting("part_max_attempts", 7, int),
                part_initial_backoff_seconds=setting(
                    "part_initial_backoff_seconds", 1, float
                ),
                part_max_backoff_seconds=setting("part_max_backoff_seconds", 16, float),
                part_timeout_seconds=setting("part_timeout_seconds", 300, float),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid uploader configuration: {e}", cause=e
            ) from e


def load_config(config_path: Optional[Union[str, Path]] = None) -> UploaderConfig:
    """Load UploaderConfig from YAML and environment."""
    return UploaderConfig.load_config(config_path)
