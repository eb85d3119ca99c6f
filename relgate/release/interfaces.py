"""Collaborator protocols.

The engine only talks to the outside world through these seams: a
repository (ref resolution, commit listing, release tags), a review surface
where humans see and approve proposals, and an event sink that hands
approved releases to the publish executor.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Protocol

from relgate.core.result import Result
from relgate.release.errors import ReleaseError
from relgate.release.model import PendingRelease, RawCommit, ReleaseCreated
from relgate.release.semver import SemVer

ApprovalStatus = Literal["approved", "rejected", "pending"]


@dataclass(frozen=True, slots=True)
class ApprovalSignal:
    """Review outcome; ``content_hash`` names the proposal that was reviewed."""

    status: ApprovalStatus
    content_hash: str | None = None


class RefResolver(Protocol):
    def resolve(self, ref: str, *, timeout: float) -> Result[str, ReleaseError]:
        """Resolve a ref to a commit id; ``history_unavailable`` if unknown."""
        ...


class CommitReader(Protocol):
    def list_commits(
        self,
        from_exclusive: str | None,
        to_inclusive: str,
        *,
        timeout: float,
    ) -> Result[Iterable[RawCommit], ReleaseError]:
        """Commits in the range, newest first.

        The returned iterable must be re-iterable with identical results.
        """
        ...


class TagSource(Protocol):
    def latest_release(
        self, head: str, *, tag_prefix: str, timeout: float
    ) -> Result[tuple[str, SemVer] | None, ReleaseError]:
        """Highest release tag reachable from head, as (tag, version)."""
        ...


class ReviewSurface(Protocol):
    def present(self, target_id: str, pending: PendingRelease) -> Result[None, ReleaseError]: ...

    def await_approval(self, target_id: str) -> Result[ApprovalSignal, ReleaseError]: ...

    def withdraw(self, target_id: str) -> Result[None, ReleaseError]:
        """Take down the proposal and any decision recorded against it."""
        ...


class EventSink(Protocol):
    def emit(self, event: ReleaseCreated) -> Result[bool, ReleaseError]:
        """Deliver an event; Ok(False) if this event id was already delivered."""
        ...
