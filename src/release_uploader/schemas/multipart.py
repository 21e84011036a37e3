"""
Multipart upload session schemas.

Wire shapes follow the control plane: begin returns camelCase part
descriptors, commit expects provider-style PascalCase parts.
"""

from enum import Enum
from typing import Iterable, List, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransferState(str, Enum):
    """Lifecycle of one upload.

    CREATED -> ACCESS_CHECKED -> ASSET_RESOLVED -> BEGUN -> UPLOADING -> COMMITTED
    On failure after BEGUN: CANCELLING -> CANCELLED, or FAILED when the
    cancel call itself fails.
    """

    CREATED = "created"
    ACCESS_CHECKED = "access_checked"
    ASSET_RESOLVED = "asset_resolved"
    BEGUN = "begun"
    UPLOADING = "uploading"
    COMMITTED = "committed"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    FAILED = "failed"


class UploadPart(BaseModel):
    """Pre-signed destination for one slice of the file."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    part_number: int = Field(..., alias="partNumber", ge=1)
    url: str = Field(..., min_length=1)
    chunk_size: int = Field(..., alias="chunkSize", ge=1)


class PartResult(BaseModel):
    """Storage-assigned ETag for one uploaded part."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    part_number: int = Field(..., alias="PartNumber", ge=1)
    etag: str = Field(..., alias="ETag", min_length=1)


class CommitPayload(BaseModel):
    """Provider commit data: every part's ETag, sorted by part number."""

    model_config = ConfigDict(populate_by_name=True)

    parts: List[PartResult] = Field(default_factory=list, alias="Parts")

    @field_validator('parts')
    @classmethod
    def validate_sorted_unique(cls, v: List[PartResult]) -> List[PartResult]:
        numbers = [p.part_number for p in v]
        if numbers != sorted(set(numbers)):
            raise ValueError("parts must be sorted by part number without duplicates")
        return v

    @classmethod
    def from_results(
        cls,
        results: Iterable[PartResult],
        expected_parts: Sequence[UploadPart],
    ) -> "CommitPayload":
        """Build a payload from completed parts, in any order.

        Raises:
            ValueError: If a part is duplicated, missing, or was never begun
        """
        ordered = sorted(results, key=lambda r: r.part_number)
        numbers = [r.part_number for r in ordered]
        if len(numbers) != len(set(numbers)):
            raise ValueError(f"Duplicate part numbers in results: {numbers}")

        expected = sorted(p.part_number for p in expected_parts)
        if numbers != expected:
            missing = sorted(set(expected) - set(numbers))
            unexpected = sorted(set(numbers) - set(expected))
            raise ValueError(
                f"Part results do not match the upload session "
                f"(missing={missing}, unexpected={unexpected})"
            )
        return cls(parts=ordered)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class BeginUploadAsset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uuid: str = Field(..., min_length=1)
    upload_parts: List[UploadPart] = Field(..., alias="uploadParts", min_length=1)


class BeginUploadResponse(BaseModel):
    """Response to beginUpload: session id and the part list."""

    asset: BeginUploadAsset

    @property
    def session_id(self) -> str:
        return self.asset.uuid

    @property
    def parts(self) -> List[UploadPart]:
        return self.asset.upload_parts


class UploadSession(BaseModel):
    """A begun multipart session and where it is in its lifecycle."""

    session_id: str
    parts: List[UploadPart]
    state: TransferState = TransferState.BEGUN
