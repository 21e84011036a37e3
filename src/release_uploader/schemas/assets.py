"""File metadata and final upload result schemas."""

from pydantic import BaseModel, ConfigDict, Field


class FileMetadata(BaseModel):
    """Name, MIME type and size of the source file, fixed at upload start."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., min_length=1)
    content_type: str = Field(default="application/octet-stream", min_length=1)
    size: int = Field(..., ge=0)


class UploadResult(BaseModel):
    """A committed release asset.

    Attributes:
        release_asset_id: Id of the release asset record
        download_url: Where the uploaded file can be fetched
    """

    release_asset_id: int
    download_url: str
