"""
Exponential backoff with jitter.

One policy object serves both retry loops in the uploader (control-plane
requests and direct-to-storage part PUTs); each call site builds its own
instance with different numbers.
"""

import random
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Delay schedule: min(base * 2^(attempt-1), cap) plus optional jitter.

    Attributes:
        base_seconds: Delay after the first failed attempt
        cap_seconds: Upper bound for the exponential part
        jitter_seconds: Upper bound of the uniform random jitter added
            when jitter is requested (0 disables jitter entirely)
    """

    base_seconds: float = 1.0
    cap_seconds: float = 30.0
    jitter_seconds: float = 0.0

    def __post_init__(self) -> None:
        if self.base_seconds < 0:
            raise ValueError("base_seconds must be non-negative")
        if self.cap_seconds < self.base_seconds:
            raise ValueError("cap_seconds must be >= base_seconds")
        if self.jitter_seconds < 0:
            raise ValueError("jitter_seconds must be non-negative")

    def delay(
        self,
        attempt: int,
        with_jitter: bool = True,
        rand: Callable[[], float] = random.random,
    ) -> float:
        """
        Compute the delay to wait after a failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed
            with_jitter: Add random jitter (server-error and network paths)
            rand: Source of uniform [0, 1) values (injectable for tests)

        Returns:
            Delay in seconds
        """
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        # Exponent is clamped so huge attempt numbers cannot overflow
        exponential = self.base_seconds * (2 ** min(attempt - 1, 32))
        delay = min(exponential, self.cap_seconds)
        if with_jitter and self.jitter_seconds > 0:
            delay += rand() * self.jitter_seconds
        return delay

