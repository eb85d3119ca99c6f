"""In-memory collaborators for release engine tests."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from relgate.core.result import Err, Ok, Result
from relgate.release.errors import ReleaseError
from relgate.release.interfaces import ApprovalSignal
from relgate.release.model import PendingRelease, RawCommit, ReleaseCreated
from relgate.release.semver import SemVer, latest_version

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


@dataclass
class FakeRepo:
    """Linear history; ``commits`` is oldest first."""

    commits: list[RawCommit] = field(default_factory=list)
    refs: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    list_calls: int = 0
    one_shot: bool = False

    def commit(self, message: str) -> str:
        n = len(self.commits)
        sha = hashlib.sha1(f"{n}:{message}".encode()).hexdigest()
        self.commits.append(RawCommit(id=sha, message=message, timestamp=1_700_000_000 + n))
        self.refs["HEAD"] = sha
        return sha

    def tag(self, name: str, sha: str | None = None) -> None:
        self.tags[name] = sha or self.refs["HEAD"]

    def resolve(self, ref: str, *, timeout: float) -> Result[str, ReleaseError]:
        if ref in self.refs:
            return Ok(self.refs[ref])
        if ref in self.tags:
            return Ok(self.tags[ref])
        if any(c.id == ref for c in self.commits):
            return Ok(ref)
        return Err(ReleaseError(kind="history_unavailable", message=f"cannot resolve ref: {ref}"))

    def list_commits(
        self, from_exclusive: str | None, to_inclusive: str, *, timeout: float
    ) -> Result[Iterable[RawCommit], ReleaseError]:
        self.list_calls += 1
        ids = [c.id for c in self.commits]
        end = ids.index(to_inclusive) + 1
        start = ids.index(from_exclusive) + 1 if from_exclusive else 0
        newest_first = tuple(reversed(self.commits[start:end]))
        if self.one_shot:
            return Ok(iter(newest_first))
        return Ok(newest_first)

    def latest_release(
        self, head: str, *, tag_prefix: str, timeout: float
    ) -> Result[tuple[str, SemVer] | None, ReleaseError]:
        return Ok(latest_version(list(self.tags), prefix=tag_prefix))


@dataclass
class FakeReview:
    presented: list[PendingRelease] = field(default_factory=list)
    signal: ApprovalSignal = field(default_factory=lambda: ApprovalSignal(status="pending"))
    withdrawn: list[str] = field(default_factory=list)
    fail: bool = False

    def present(self, target_id: str, pending: PendingRelease) -> Result[None, ReleaseError]:
        if self.fail:
            return Err(ReleaseError(kind="review_failed", message="review surface unavailable"))
        self.presented.append(pending)
        return Ok(None)

    def await_approval(self, target_id: str) -> Result[ApprovalSignal, ReleaseError]:
        return Ok(self.signal)

    def withdraw(self, target_id: str) -> Result[None, ReleaseError]:
        self.withdrawn.append(target_id)
        self.signal = ApprovalSignal(status="pending")
        return Ok(None)


@dataclass
class FakeSink:
    events: list[ReleaseCreated] = field(default_factory=list)
    failures: int = 0

    def emit(self, event: ReleaseCreated) -> Result[bool, ReleaseError]:
        if self.failures > 0:
            self.failures -= 1
            return Err(ReleaseError(kind="event_failed", message="sink unavailable"))
        if any(e.event_id == event.event_id for e in self.events):
            return Ok(False)
        self.events.append(event)
        return Ok(True)
