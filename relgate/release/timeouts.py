from __future__ import annotations

import time
from dataclasses import dataclass

# Local git operations (rev-parse, log, tag)
GIT_TIMEOUT_SECONDS = 30.0

# Whole coordinator run when the caller does not supply one
RUN_TIMEOUT_SECONDS = 60.0

# Per-target lock acquisition never waits longer than this
STORE_LOCK_TIMEOUT_SECONDS = 10.0

# Optimistic-concurrency retry policy for state writes
STORE_RETRY_ATTEMPTS = 3
STORE_RETRY_DELAY_SECONDS = 0.05


@dataclass(frozen=True, slots=True)
class Deadline:
    """Absolute point in time shared by every step of one run."""

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(expires_at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def bound(self, cap: float) -> float:
        """Timeout for a single call: the cap, unless the deadline is closer."""
        return min(cap, self.remaining())
