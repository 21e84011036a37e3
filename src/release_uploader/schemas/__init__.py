"""
Pydantic schemas for upload inputs, control-plane payloads and results.

Schemas:
    UploadInputs: Validated per-run inputs
    FileMetadata: Source file name, MIME type and size
    UploadPart / PartResult / CommitPayload: Multipart wire shapes
    BeginUploadResponse / UploadSession: Multipart session
    UploadResult: Committed asset id and download URL
"""

from release_uploader.schemas.assets import FileMetadata, UploadResult
from release_uploader.schemas.inputs import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PARALLEL_CHUNKS,
    MAX_CHUNK_SIZE,
    MIN_CHUNK_SIZE,
    IfFilePathNotFound,
    UploadInputs,
)
from release_uploader.schemas.multipart import (
    BeginUploadResponse,
    CommitPayload,
    PartResult,
    TransferState,
    UploadPart,
    UploadSession,
)

__all__ = [
    "UploadInputs",
    "IfFilePathNotFound",
    "MAX_CHUNK_SIZE",
    "MIN_CHUNK_SIZE",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_PARALLEL_CHUNKS",
    "FileMetadata",
    "UploadResult",
    "UploadPart",
    "PartResult",
    "CommitPayload",
    "BeginUploadResponse",
    "UploadSession",
    "TransferState",
]
