"""
Release asset upload coordinator.

Drives one upload through its states:

    CREATED -> ACCESS_CHECKED -> ASSET_RESOLVED -> BEGUN -> UPLOADING -> COMMITTED
                                                  \\-> CANCELLING -> CANCELLED | FAILED

Files up to MIN_MULTIPART_UPLOAD_SIZE go through a single stream request;
larger files use a multipart session. A multipart session that does not
commit is cancelled exactly once, and the error that broke it is the one
the caller sees.
"""

import asyncio
import json
import logging
from typing import Optional

from core.errors.exceptions import ConflictError
from core.logging.context import clear_log_context, set_log_context
from core.logging.utilities import LoggedClass, logged_operation
from release_uploader.api_client import ReleaseApiClient
from release_uploader.config import MIN_MULTIPART_UPLOAD_SIZE, UploaderConfig
from release_uploader.files import file_metadata
from release_uploader.schemas import (
    FileMetadata,
    TransferState,
    UploadInputs,
    UploadResult,
    UploadSession,
)
from release_uploader.transfer.chunks import ChunkUploader


class ReleaseAssetUploader(LoggedClass):
    """
    Uploads one file as a release asset.

    Usage:
        async with ReleaseAssetUploader(inputs) as uploader:
            result = await uploader.upload_file()
            print(result.release_asset_id, result.download_url)

    Configuration:
        inputs: Validated UploadInputs
        config: UploaderConfig with timeout and retry settings
        api: ReleaseApiClient (built from inputs when omitted)
        chunk_uploader: ChunkUploader (built from config when omitted)
    """

    log_component = "coordinator"

    def __init__(
        self,
        inputs: UploadInputs,
        config: Optional[UploaderConfig] = None,
        api: Optional[ReleaseApiClient] = None,
        chunk_uploader: Optional[ChunkUploader] = None,
    ):
        self.inputs = inputs
        self.config = config or UploaderConfig()
        self.release_id = inputs.release_id
        self.asset_key = inputs.asset_key

        self.api = api or ReleaseApiClient(
            inputs.api_base_url, inputs.auth_token, config=self.config
        )
        self.chunk_uploader = chunk_uploader or ChunkUploader(self.config)

        self.state = TransferState.CREATED
        self.session: Optional[UploadSession] = None

        super().__init__()

    async def __aenter__(self) -> "ReleaseAssetUploader":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.chunk_uploader.close()
        await self.api.close()

    def _transition(self, state: TransferState, **extra) -> None:
        previous = self.state
        self.state = state
        if self.session is not None:
            self.session.state = state
        self._log(
            logging.INFO,
            f"Upload state {previous.value} -> {state.value}",
            state=state.value,
            **extra,
        )

    @logged_operation(level=logging.INFO, log_start=True)
    async def upload_file(self) -> UploadResult:
        """
        Upload the input file, choosing stream or multipart by size.

        Returns:
            UploadResult with asset id and download URL

        Raises:
            FileNotFoundForUploadError: Source file missing
            AuthError / ForbiddenError: Not logged in or no access to release
            ConflictError: Asset exists and overwrite is off
            UploaderError: Any failure of the upload itself
        """
        clear_log_context(keep_run_id=True)
        set_log_context(release_id=self.release_id, asset_key=self.asset_key)

        metadata = file_metadata(self.inputs.file_path)
        await self._check_access()

        if metadata.size <= MIN_MULTIPART_UPLOAD_SIZE:
            return await self._stream_upload(metadata)
        return await self._multipart_upload(metadata)

    async def _check_access(self) -> None:
        identity = await self.api.whoami()
        self._log(logging.INFO, f"Logged in to user {json.dumps(identity, indent=2)}")
        await self.api.can_access_release(self.release_id)
        self._log(logging.INFO, f"Access to release {self.release_id} confirmed.")
        self._transition(TransferState.ACCESS_CHECKED)

    async def _resolve_asset(self) -> int:
        """Find or create the asset record, honouring the overwrite flag."""
        overwrite = self.inputs.overwrite
        asset_id = await self.api.get_release_asset_id(self.release_id, self.asset_key)

        if asset_id is not None:
            if not overwrite:
                raise ConflictError(
                    f"A release asset for {self.release_id} - {self.asset_key} already exists",
                    context={"release_asset_id": asset_id},
                )
            self._log(
                logging.INFO,
                f"Asset {self.asset_key} already exists. Overwriting...",
                release_asset_id=asset_id,
            )
            return asset_id

        try:
            return await self.api.create_release_asset(self.release_id, self.asset_key)
        except ConflictError:
            if not overwrite:
                raise
            self._log(logging.INFO, f"Asset {self.asset_key} already exists. Overwriting...")

        return await self._find_existing_asset()

    async def _find_existing_asset(self) -> int:
        """Id of an asset the server reported as existing (409)."""
        asset_id = await self.api.get_release_asset_id(self.release_id, self.asset_key)
        if asset_id is None:
            raise ConflictError(
                f"Release asset {self.asset_key} was reported as existing "
                f"but could not be found"
            )
        return asset_id

    async def _stream_upload(self, metadata: FileMetadata) -> UploadResult:
        self._log(
            logging.DEBUG,
            f"File is smaller than {MIN_MULTIPART_UPLOAD_SIZE}, uploading via stream upload",
            upload_mode="stream",
            total_bytes=metadata.size,
        )
        asset_id = await self.api.get_release_asset_id(self.release_id, self.asset_key)
        if asset_id is not None and not self.inputs.overwrite:
            raise ConflictError(
                f"A release asset for {self.release_id} - {self.asset_key} already exists",
                context={"release_asset_id": asset_id},
            )
        self._transition(TransferState.ASSET_RESOLVED, release_asset_id=asset_id)

        if asset_id is not None:
            self._log(logging.INFO, "Release asset already exists, overriding...")
        else:
            self._log(logging.DEBUG, "Release asset does not exist, creating a new one")

        try:
            await self.api.upload_release_asset_stream(
                self.release_id,
                self.asset_key,
                self.inputs.file_path,
                metadata,
                release_asset_id=asset_id,
            )
        except ConflictError:
            # Created concurrently since the lookup; replace it when allowed
            if asset_id is not None or not self.inputs.overwrite:
                raise
            asset_id = await self._find_existing_asset()
            self._log(
                logging.INFO,
                f"Asset {self.asset_key} already exists. Overwriting...",
                release_asset_id=asset_id,
            )
            await self.api.upload_release_asset_stream(
                self.release_id,
                self.asset_key,
                self.inputs.file_path,
                metadata,
                release_asset_id=asset_id,
            )
        result = await self.api.get_release_asset(self.release_id, self.asset_key)
        self._transition(
            TransferState.COMMITTED,
            release_asset_id=result.release_asset_id,
            download_url=result.download_url,
        )
        return result

    async def _multipart_upload(self, metadata: FileMetadata) -> UploadResult:
        chunk_size = self.inputs.chunk_size
        asset_id = await self._resolve_asset()
        self._transition(TransferState.ASSET_RESOLVED, release_asset_id=asset_id)

        begin = await self.api.begin_multipart_upload(asset_id, metadata, chunk_size)
        self.session = UploadSession(session_id=begin.session_id, parts=begin.parts)
        set_log_context(session_id=begin.session_id)
        self._transition(
            TransferState.BEGUN,
            release_asset_id=asset_id,
            parts_total=len(begin.parts),
            upload_mode="multipart",
        )

        try:
            self._transition(TransferState.UPLOADING)
            payload = await self.chunk_uploader.upload(
                begin.parts,
                self.inputs.file_path,
                metadata,
                chunk_size=chunk_size,
                parallelism=self.inputs.parallel_chunks,
            )
            download_url = await self.api.commit_multipart_upload(
                asset_id, begin.session_id, payload
            )
        except (Exception, asyncio.CancelledError) as e:
            self._log_exception(
                e,
                "Failed to upload parts or commit upload, canceling upload",
                include_traceback=False,
            )
            await self._cancel(asset_id, begin.session_id)
            raise

        self._transition(
            TransferState.COMMITTED,
            release_asset_id=asset_id,
            download_url=download_url,
        )
        return UploadResult(release_asset_id=asset_id, download_url=download_url)

    async def _cancel(self, asset_id: int, session_id: str) -> None:
        """Cancel the session; a failing cancel is logged, never raised."""
        self._transition(TransferState.CANCELLING)
        try:
            await self.api.cancel_multipart_upload(asset_id, session_id)
        except Exception as cancel_error:
            self._log_exception(cancel_error, "Failed to cancel upload session")
            self._transition(TransferState.FAILED)
            return
        self._transition(TransferState.CANCELLED)
