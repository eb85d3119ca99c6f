"""History walking between two refs.

Order contract: commits are yielded newest to oldest. The changelog builder
relies on it to list the most recent entries first.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from relgate.core.result import Err, Ok, Result
from relgate.release.errors import ReleaseError
from relgate.release.interfaces import CommitReader, RefResolver
from relgate.release.model import RawCommit, SourceRange
from relgate.release.timeouts import GIT_TIMEOUT_SECONDS, Deadline


@dataclass(frozen=True, slots=True)
class CommitRange:
    """Resolved, restartable commit sequence.

    Iterating twice yields the same commits in the same order.
    """

    source_range: SourceRange
    commits: Iterable[RawCommit]

    def __iter__(self) -> Iterator[RawCommit]:
        return iter(self.commits)


def _timeout_error(step: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="timeout",
            message=f"deadline expired while {step}",
            hint="Re-run; no state was changed.",
        )
    )


class HistoryWalker:
    def __init__(self, resolver: RefResolver, reader: CommitReader) -> None:
        self._resolver = resolver
        self._reader = reader

    def resolve(self, ref: str, *, deadline: Deadline) -> Result[str, ReleaseError]:
        if deadline.expired:
            return _timeout_error(f"resolving {ref}")
        return self._resolver.resolve(ref, timeout=deadline.bound(GIT_TIMEOUT_SECONDS))

    def walk(
        self,
        from_ref: str | None,
        to_ref: str,
        *,
        deadline: Deadline,
    ) -> Result[CommitRange, ReleaseError]:
        """Walk ``(from_ref, to_ref]``; ``from_ref=None`` walks from the root.

        Both refs are resolved first so an unknown ref fails before any
        commit is read.
        """
        from_id: str | None = None
        if from_ref is not None:
            resolved_from = self.resolve(from_ref, deadline=deadline)
            if isinstance(resolved_from, Err):
                return resolved_from
            from_id = resolved_from.value

        resolved_to = self.resolve(to_ref, deadline=deadline)
        if isinstance(resolved_to, Err):
            return resolved_to
        to_id = resolved_to.value

        if deadline.expired:
            return _timeout_error("listing commits")

        listed = self._reader.list_commits(
            from_id, to_id, timeout=deadline.bound(GIT_TIMEOUT_SECONDS)
        )
        if isinstance(listed, Err):
            return listed

        commits = listed.value
        if isinstance(commits, Iterator):
            # One-shot iterators cannot be restarted; pin them down once.
            commits = tuple(commits)

        return Ok(
            CommitRange(
                source_range=SourceRange(from_ref=from_id, to_ref=to_id),
                commits=commits,
            )
        )
