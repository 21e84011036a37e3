"""
Upload input schema.

One UploadInputs instance describes a single upload request: which release
to attach to, under which key, from which local path, and how to chunk it.
"""

import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.errors.exceptions import ConfigurationError
from core.security.sanitize import mask_token

# Storage providers reject multipart parts smaller than this (except the last)
MIN_CHUNK_SIZE = 5 * 1024 * 1024
# Storage providers reject larger parts
MAX_CHUNK_SIZE = 5 * 1024 * 1024 * 1024

DEFAULT_CHUNK_SIZE = MIN_CHUNK_SIZE
DEFAULT_PARALLEL_CHUNKS = 4


class IfFilePathNotFound(str, Enum):
    """What to do when the file path matches nothing readable."""

    WARN = "warn"
    ERROR = "error"
    IGNORE = "ignore"


class UploadInputs(BaseModel):
    """Validated inputs for one upload run.

    Attributes:
        auth_token: Bearer token for the control plane
        api_host: Control-plane host; requests go to https://api.<host>
        release_id: Release the asset is attached to
        asset_key: Key identifying the asset within the release
        file_path: Local file path or glob pattern
        overwrite: Replace an existing asset with the same key
        if_file_path_not_found: Policy for a missing file (warn, error, ignore)
        chunk_size: Requested multipart chunk size in bytes
        parallel_chunks: Maximum part uploads in flight

    Example:
        >>> inputs = UploadInputs(
        ...     auth_token="tok",
        ...     api_host="example.io",
        ...     release_id=42,
        ...     asset_key="firmware",
        ...     file_path="build/firmware.bin",
        ... )
        >>> inputs.api_base_url
        'https://api.example.io'
    """

    auth_token: str = Field(..., description="Bearer token", min_length=1)
    api_host: str = Field(..., description="Control-plane host", min_length=1)
    release_id: int = Field(..., description="Target release id", ge=0)
    asset_key: str = Field(..., description="Release asset key", min_length=1)
    file_path: str = Field(..., description="File path or glob", min_length=1)
    overwrite: bool = Field(
        default=False,
        description="Replace an existing asset with the same key"
    )
    if_file_path_not_found: IfFilePathNotFound = Field(
        default=IfFilePathNotFound.WARN,
        description="Policy when the file path matches nothing"
    )
    chunk_size: int = Field(
        default=DEFAULT_CHUNK_SIZE,
        description="Multipart chunk size in bytes",
        ge=MIN_CHUNK_SIZE,
        le=MAX_CHUNK_SIZE
    )
    parallel_chunks: int = Field(
        default=DEFAULT_PARALLEL_CHUNKS,
        description="Maximum concurrent part uploads",
        ge=1
    )

    @field_validator('auth_token', 'api_host', 'asset_key', 'file_path', mode='before')
    @classmethod
    def validate_non_empty_strings(cls, v: Any, info) -> Any:
        """Ensure string fields are not empty or whitespace-only."""
        if isinstance(v, str):
            if not v.strip():
                raise ValueError(f"{info.field_name} cannot be empty or whitespace")
            return v.strip()
        return v

    @field_validator('api_host')
    @classmethod
    def strip_trailing_slashes(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Base URL for control-plane requests."""
        return f"https://api.{self.api_host}"

    def summary(self) -> Dict[str, Any]:
        """Inputs safe to log, token masked."""
        data = self.model_dump(mode="json")
        data["auth_token"] = mask_token(self.auth_token)
        return data

    @classmethod
    def build(cls, values: Mapping[str, Any]) -> "UploadInputs":
        """Validate raw values, raising ConfigurationError on failure."""
        try:
            return cls.model_validate(dict(values))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid upload inputs: {e}", cause=e) from e

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "UploadInputs":
        """Load inputs from GitHub Actions style INPUT_* variables.

        Input names follow the action convention: INPUT_ plus the upper-cased
        input name with hyphens kept (e.g. INPUT_RELEASE-ID). Underscore
        spellings (INPUT_RELEASE_ID) are accepted as well.

        Inputs:
            token, host, release-id, asset-key, file-path, overwrite,
            if-file-path-not-found, chunk-size, parallel-chunks

        Args:
            environ: Environment mapping (default: os.environ)
            overrides: Values that take precedence (e.g. CLI flags);
                None entries are ignored

        Raises:
            ConfigurationError: If required inputs are missing or invalid
        """
        environ = os.environ if environ is None else environ

        def get_input(name: str) -> Optional[str]:
            for key in (f"INPUT_{name.upper()}", f"INPUT_{name.upper().replace('-', '_')}"):
                value = environ.get(key)
                if value is not None and value.strip() != "":
                    return value.strip()
            return None

        values: Dict[str, Any] = {
            "auth_token": get_input("token"),
            "api_host": get_input("host"),
            "release_id": get_input("release-id"),
            "asset_key": get_input("asset-key"),
            "file_path": get_input("file-path"),
            "overwrite": (get_input("overwrite") or "false").lower() == "true",
            "if_file_path_not_found": get_input("if-file-path-not-found"),
            "chunk_size": get_input("chunk-size"),
            "parallel_chunks": get_input("parallel-chunks"),
        }
        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value

        return cls.build({k: v for k, v in values.items() if v is not None})
