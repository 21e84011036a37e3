"""Source file checks and metadata."""

import logging
import mimetypes
import os
from pathlib import Path
from typing import Union

from core.errors.exceptions import FileNotFoundForUploadError
from core.logging.setup import get_logger
from core.logging.utilities import log_with_context
from release_uploader.schemas import FileMetadata, IfFilePathNotFound

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def file_exists(
    file_path: Union[str, Path],
    if_not_found: Union[IfFilePathNotFound, str] = IfFilePathNotFound.WARN,
) -> bool:
    """
    Check that a file exists and is readable, applying the not-found policy.

    Args:
        file_path: Path to check
        if_not_found: 'error' raises, 'warn' logs a warning, 'ignore' is silent

    Returns:
        True if the file can be uploaded, False if it should be skipped

    Raises:
        FileNotFoundForUploadError: If missing and the policy is 'error'
    """
    policy = IfFilePathNotFound(if_not_found)
    path = Path(file_path)

    if path.is_file() and os.access(path, os.R_OK):
        return True

    error = FileNotFoundForUploadError(str(file_path))
    if policy == IfFilePathNotFound.ERROR:
        raise error
    if policy == IfFilePathNotFound.WARN:
        log_with_context(logger, logging.WARNING, str(error), file_path=str(file_path))
    else:
        log_with_context(logger, logging.DEBUG, str(error), file_path=str(file_path))
    return False


def file_metadata(file_path: Union[str, Path]) -> FileMetadata:
    """
    Derive upload metadata from a file on disk.

    Raises:
        FileNotFoundForUploadError: If the file cannot be stat'ed
    """
    path = Path(file_path)
    try:
        size = path.stat().st_size
    except OSError as e:
        raise FileNotFoundForUploadError(str(file_path), cause=e) from e

    content_type, _ = mimetypes.guess_type(path.name)
    return FileMetadata(
        filename=path.name,
        content_type=content_type or DEFAULT_CONTENT_TYPE,
        size=size,
    )
