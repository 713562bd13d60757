from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RetryPhase(str, Enum):
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def backoff_delay(retry_number: int, base_ms: int = 1000) -> float:
    """Seconds to wait before the ``retry_number``-th retry (1-based, linear)."""
    if retry_number < 1:
        raise ValueError("retry_number starts at 1")
    return retry_number * base_ms / 1000.0


@dataclass
class RetryState:
    """Bookkeeping for one upstream call.

    attempting -> succeeded          (2xx)
    attempting -> failed             (non-retryable, or budget spent)
    attempting -> backoff -> attempting
    """

    max_retries: int = 2
    base_ms: int = 1000
    retries: int = 0
    phase: RetryPhase = RetryPhase.ATTEMPTING

    @property
    def attempt(self) -> int:
        return self.retries + 1

    @property
    def done(self) -> bool:
        return self.phase in (RetryPhase.SUCCEEDED, RetryPhase.FAILED)

    def _expect(self, phase: RetryPhase) -> None:
        if self.phase is not phase:
            raise RuntimeError(f"invalid retry transition from {self.phase.value}")

    def succeed(self) -> None:
        self._expect(RetryPhase.ATTEMPTING)
        self.phase = RetryPhase.SUCCEEDED

    def fail(self) -> None:
        self._expect(RetryPhase.ATTEMPTING)
        self.phase = RetryPhase.FAILED

    def retry(self) -> Optional[float]:
        """Enter backoff and return the delay, or fail when the budget is spent."""
        self._expect(RetryPhase.ATTEMPTING)
        if self.retries >= self.max_retries:
            self.phase = RetryPhase.FAILED
            return None
        self.retries += 1
        self.phase = RetryPhase.BACKOFF
        return backoff_delay(self.retries, self.base_ms)

    def resume(self) -> None:
        self._expect(RetryPhase.BACKOFF)
        self.phase = RetryPhase.ATTEMPTING
