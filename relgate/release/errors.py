"""Error payload for the release engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "history_unavailable",
    "timeout",
    "no_pending_release",
    "stale_approval",
    "store_write_conflict",
    "store_failed",
    "review_failed",
    "event_failed",
    "invalid_input",
    "config_invalid",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error.

    ``history_unavailable`` is fatal for the run, ``timeout`` means the whole
    run is safe to retry, ``no_pending_release`` and ``stale_approval`` are
    operator misuse, and ``store_write_conflict`` is only surfaced after the
    coordinator exhausted its retries.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    @property
    def retryable(self) -> bool:
        return self.kind in ("timeout", "store_write_conflict")

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
