"""
Concurrent part uploader.

Reads fixed-size byte ranges from the source file and PUTs them straight
to their pre-signed storage URLs. Part URLs carry credentials in their
query string, so they are never logged unsanitized or put in error
messages.
"""

import asyncio
import logging
import os
import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

import aiohttp

from core.errors.exceptions import IntegrityTagError, PartUploadError
from core.logging.utilities import LoggedClass
from core.resilience.backoff import BackoffPolicy
from release_uploader.config import UploaderConfig
from release_uploader.schemas import CommitPayload, FileMetadata, PartResult, UploadPart
from release_uploader.transfer.progress import ProgressReporter

# Failures retried per part
PART_RETRYABLE_ERRORS = (
    PartUploadError,
    IntegrityTagError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
)


def part_offset(part_number: int, chunk_size: int) -> int:
    """Byte offset of a part; uses the requested chunk size for every part."""
    return (part_number - 1) * chunk_size


def read_range(fd: int, size: int, offset: int) -> bytes:
    """Read up to size bytes at offset, stopping early only at end of file.

    A single pread may return fewer bytes than asked (Linux caps one read
    just under 2 GiB), so reads are repeated until the range is filled.
    """
    buffers: List[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = os.pread(fd, remaining, offset)
        if not chunk:
            break
        buffers.append(chunk)
        remaining -= len(chunk)
        offset += len(chunk)
    return b"".join(buffers)


def normalize_etag(raw: Optional[str]) -> Optional[str]:
    """Strip surrounding quotes from an ETag; None if nothing is left."""
    if raw is None:
        return None
    etag = raw.strip().strip('"')
    return etag or None


class ChunkUploader(LoggedClass):
    """
    Uploads multipart parts with bounded concurrency.

    At most ``parallelism`` parts are in flight. After the first part fails
    for good, parts that have not started are skipped; parts already in
    flight finish. The first failure is raised once every task has settled.

    Usage:
        async with ChunkUploader(config) as uploader:
            payload = await uploader.upload(parts, "app.img", metadata,
                                            chunk_size=5 * 1024 * 1024,
                                            parallelism=4)
    """

    log_component = "chunks"

    def __init__(
        self,
        config: Optional[UploaderConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or UploaderConfig()
        self.max_attempts = self.config.part_max_attempts
        self.backoff = BackoffPolicy(
            base_seconds=self.config.part_initial_backoff_seconds,
            cap_seconds=self.config.part_max_backoff_seconds,
            jitter_seconds=0.0,
        )

        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._clock = clock

        super().__init__()

    async def __aenter__(self) -> "ChunkUploader":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> None:
        """Create a bare session: storage URLs must not see control-plane headers."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def upload(
        self,
        parts: Sequence[UploadPart],
        file_path: str,
        metadata: FileMetadata,
        chunk_size: int,
        parallelism: int,
    ) -> CommitPayload:
        """
        Upload every part and return the sorted commit payload.

        Args:
            parts: Parts from beginUpload
            file_path: Source file
            metadata: Source file metadata (progress total)
            chunk_size: Requested chunk size; fixes every part's offset
            parallelism: Maximum parts in flight

        Raises:
            PartUploadError: First part that failed after all its attempts
        """
        if parallelism < 1:
            raise ValueError("parallelism must be >= 1")
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        await self._ensure_session()

        semaphore = asyncio.Semaphore(parallelism)
        failed = asyncio.Event()
        errors: List[BaseException] = []
        progress: "asyncio.Queue[Optional[int]]" = asyncio.Queue()
        reporter = ProgressReporter(metadata.size, clock=self._clock)
        consumer = asyncio.create_task(self._consume_progress(progress, reporter))

        self._log(
            logging.INFO,
            f"Uploading {len(parts)} parts with parallelism {parallelism}",
            parts_total=len(parts),
            parallelism=parallelism,
            chunk_size=chunk_size,
            total_bytes=metadata.size,
        )

        try:
            with open(file_path, "rb") as f:
                fd = f.fileno()

                async def run(part: UploadPart) -> Optional[PartResult]:
                    async with semaphore:
                        if failed.is_set():
                            return None
                        try:
                            result, bytes_read = await self._upload_part(
                                fd, part, chunk_size, metadata.size
                            )
                        except Exception as e:
                            failed.set()
                            errors.append(e)
                            raise
                        progress.put_nowait(bytes_read)
                        return result

                outcomes = await asyncio.gather(
                    *(run(part) for part in parts), return_exceptions=True
                )
        finally:
            progress.put_nowait(None)
            await consumer

        if errors:
            raise errors[0]
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        return CommitPayload.from_results(
            [r for r in outcomes if isinstance(r, PartResult)], parts
        )

    async def _consume_progress(
        self, queue: "asyncio.Queue[Optional[int]]", reporter: ProgressReporter
    ) -> None:
        """Single writer for the progress counter; stops on None."""
        while True:
            n = await queue.get()
            if n is None:
                return
            line = reporter.report(n)
            self._log(
                logging.INFO,
                line,
                bytes_uploaded=reporter.uploaded_bytes,
                total_bytes=reporter.total_size,
            )

    async def _upload_part(
        self, fd: int, part: UploadPart, chunk_size: int, file_size: int
    ) -> Tuple[PartResult, int]:
        offset = part_offset(part.part_number, chunk_size)
        expected = min(chunk_size, max(file_size - offset, 0))
        data = await asyncio.to_thread(read_range, fd, chunk_size, offset)
        if len(data) != expected:
            raise PartUploadError(
                part.part_number,
                f"Part {part.part_number} read {len(data)} of {expected} bytes "
                f"at offset {offset}",
            )

        for attempt in range(1, self.max_attempts + 1):
            try:
                etag = await self._put_part(part, data)
                self._log(
                    logging.DEBUG,
                    f"Uploaded part {part.part_number}",
                    part_number=part.part_number,
                    bytes_read=len(data),
                    attempt=attempt,
                )
                return PartResult(part_number=part.part_number, etag=etag), len(data)
            except PART_RETRYABLE_ERRORS as e:
                if attempt == self.max_attempts:
                    raise PartUploadError(
                        part.part_number,
                        f"Part {part.part_number} failed after {attempt} attempts",
                        attempts=attempt,
                        status_code=getattr(e, "status_code", None),
                        cause=e,
                    ) from e
                delay = self.backoff.delay(attempt, with_jitter=False)
                self._log(
                    logging.WARNING,
                    f"Attempt {attempt} for part {part.part_number} failed. "
                    f"Retrying in {delay:g}s...",
                    part_number=part.part_number,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=delay,
                    error_message=str(e),
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    async def _put_part(self, part: UploadPart, data: bytes) -> str:
        """PUT one part; returns its normalized ETag."""
        assert self._session is not None  # for mypy
        async with self._session.put(
            part.url,
            data=data,
            timeout=aiohttp.ClientTimeout(total=self.config.part_timeout_seconds),
        ) as response:
            if not 200 <= response.status < 300:
                raise PartUploadError(
                    part.part_number,
                    f"Upload failed with status {response.status}",
                    status_code=response.status,
                )
            raw = response.headers.get("ETag")
            etag = normalize_etag(raw)
            if etag is None:
                raise IntegrityTagError(part.part_number, raw)
            return etag
