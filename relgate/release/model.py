from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from relgate.release.semver import SemVer


class ChangeType(Enum):
    FEATURE = "feature"
    FIX = "fix"
    BREAKING = "breaking"
    CHORE = "chore"
    DOCS = "docs"
    OTHER = "other"


class BumpKind(Enum):
    """Magnitude of a version increase, ordered by ``rank``."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _BUMP_RANK[self]


_BUMP_RANK = {BumpKind.NONE: 0, BumpKind.PATCH: 1, BumpKind.MINOR: 2, BumpKind.MAJOR: 3}


ChangelogCategory = Literal["breaking", "feature", "fix", "other"]
CATEGORY_ORDER: tuple[ChangelogCategory, ...] = ("breaking", "feature", "fix", "other")

TargetState = Literal["IDLE", "PROPOSED"]
RunAction = Literal["idle", "cleared", "unchanged", "proposed"]
PollStatus = Literal["idle", "pending", "rejected", "published"]


@dataclass(frozen=True, slots=True)
class RawCommit:
    """A commit as read from the repository.

    ``timestamp`` is the committer time in seconds since the epoch.
    """

    id: str
    message: str
    timestamp: int


@dataclass(frozen=True, slots=True)
class ChangeDescriptor:
    id: str
    type: ChangeType
    scope: str | None
    summary: str
    breaking: bool
    # Type as written in the header; differs from ``type`` for breaking changes.
    declared_type: ChangeType

    @property
    def short_id(self) -> str:
        return self.id[:7]


@dataclass(frozen=True, slots=True)
class SourceRange:
    """Commits after ``from_ref`` (None = repository root) up to ``to_ref``."""

    from_ref: str | None
    to_ref: str

    def pretty(self) -> str:
        start = self.from_ref[:7] if self.from_ref else "root"
        return f"{start}..{self.to_ref[:7]}"


@dataclass(frozen=True, slots=True)
class VersionDecision:
    previous: SemVer
    next: SemVer
    bump: BumpKind

    @property
    def is_release(self) -> bool:
        return self.bump is not BumpKind.NONE


@dataclass(frozen=True, slots=True)
class ChangelogSection:
    """Rendered changelog for one version.

    ``groups`` keeps the fixed category order; ``text`` is the deterministic
    Markdown rendering of exactly these groups.
    """

    version: str
    groups: tuple[tuple[ChangelogCategory, tuple[str, ...]], ...]
    text: str

    @property
    def categories(self) -> tuple[ChangelogCategory, ...]:
        return tuple(category for category, _ in self.groups)

    def entries(self, category: ChangelogCategory) -> tuple[str, ...]:
        for name, items in self.groups:
            if name == category:
                return items
        return ()

    def as_dict(self) -> dict[str, list[str]]:
        return {category: list(items) for category, items in self.groups}


@dataclass(frozen=True, slots=True)
class PendingRelease:
    target_id: str
    decision: VersionDecision
    changelog: ChangelogSection
    source_range: SourceRange
    content_hash: str
    created_at: str


@dataclass(frozen=True, slots=True)
class PublishedMarker:
    """Where the last approved release of a target ended."""

    version: SemVer
    to_ref: str
    tag: str
    published_at: str


@dataclass(frozen=True, slots=True)
class TargetRecord:
    """Everything persisted for one target id.

    ``revision`` increases on every write and backs compare-and-swap updates.
    ``outbox`` holds a release event committed together with the publish
    transition until the event sink has acknowledged it.
    """

    target_id: str
    revision: int = 0
    pending: PendingRelease | None = None
    last_published: PublishedMarker | None = None
    outbox: ReleaseCreated | None = None

    @property
    def state(self) -> TargetState:
        return "PROPOSED" if self.pending is not None else "IDLE"


@dataclass(frozen=True, slots=True)
class ReleaseTarget:
    """A target resolved from configuration, ready for the coordinator."""

    id: str
    head: str
    tag_prefix: str
    initial_version: SemVer
    path: str | None = None


@dataclass(frozen=True, slots=True)
class ReleaseCreated:
    """Event handed to the publish executor, exactly once per approval."""

    event_id: str
    target_id: str
    version: str
    tag: str
    changelog: str
    source_range: SourceRange
    content_hash: str


@dataclass(frozen=True, slots=True)
class RunOutcome:
    target_id: str
    action: RunAction
    decision: VersionDecision | None = None
    pending: PendingRelease | None = None

    @property
    def state(self) -> TargetState:
        return "PROPOSED" if self.action in ("proposed", "unchanged") else "IDLE"


@dataclass(frozen=True, slots=True)
class PollOutcome:
    target_id: str
    status: PollStatus
    event: ReleaseCreated | None = None
