"""Upload progress accounting."""

import time
from typing import Callable

MIB = 1024 * 1024


def format_progress(elapsed_s: float, uploaded_bytes: int, total_bytes: int) -> str:
    """
    Render a status line for the current transfer position.

    Example:
        >>> format_progress(1.0, 5 * MIB, 10 * MIB)
        'Uploaded 5.00MB / 10.00MB (50.00%) - Elapsed: 1.0s - ETA: 1.0s'
    """
    percent = (uploaded_bytes / total_bytes) * 100 if total_bytes > 0 else 100.0
    remaining = max(total_bytes - uploaded_bytes, 0)

    if remaining == 0:
        eta = "0.0s"
    elif elapsed_s > 0 and uploaded_bytes > 0:
        speed = uploaded_bytes / elapsed_s
        eta = f"{remaining / speed:.1f}s"
    else:
        eta = "unknown"

    return (
        f"Uploaded {uploaded_bytes / MIB:.2f}MB / {total_bytes / MIB:.2f}MB "
        f"({percent:.2f}%) - Elapsed: {elapsed_s:.1f}s - ETA: {eta}"
    )


class ProgressReporter:
    """
    Cumulative byte counter for one transfer.

    Only the progress consumer task calls report(), so no locking is needed.
    """

    def __init__(self, total_size: int, clock: Callable[[], float] = time.monotonic):
        if total_size < 0:
            raise ValueError("total_size must be >= 0")
        self.total_size = total_size
        self._clock = clock
        self._started_at = clock()
        self._uploaded = 0

    @property
    def uploaded_bytes(self) -> int:
        return self._uploaded

    @property
    def elapsed(self) -> float:
        return max(self._clock() - self._started_at, 0.0)

    def report(self, n: int) -> str:
        """Add n confirmed bytes and return the status line."""
        if n < 0:
            raise ValueError("Uploaded byte count cannot be negative")
        self._uploaded += n
        return format_progress(self.elapsed, self._uploaded, self.total_size)
