from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from relgate.core.result import Err, Ok, Result
from relgate.git.repository import GitError, GitLog, Repository
from relgate.release.errors import ReleaseError
from relgate.release.model import RawCommit
from relgate.release.semver import SemVer, latest_version


@dataclass(frozen=True, slots=True)
class _Commits:
    log: GitLog

    def __iter__(self) -> Iterator[RawCommit]:
        for entry in self.log:
            yield RawCommit(id=entry.sha, message=entry.message, timestamp=entry.timestamp)


def _to_release_error(e: GitError, *, message: str) -> ReleaseError:
    if e.timed_out:
        return ReleaseError(kind="timeout", message=f"git {e.command} timed out", hint=e.message)
    return ReleaseError(kind="history_unavailable", message=message, hint=e.message)


class GitHistorySource:
    """Ref resolver and commit reader backed by a local git repository.

    ``path`` scopes the commit listing to one sub-directory, so several
    targets can live in one repository.
    """

    def __init__(self, repo: Repository, *, path: str | None = None) -> None:
        self._repo = repo
        self._path = path

    def resolve(self, ref: str, *, timeout: float) -> Result[str, ReleaseError]:
        result = self._repo.rev_parse(ref, timeout=timeout)
        if isinstance(result, Err):
            return Err(_to_release_error(result.error, message=f"cannot resolve ref: {ref}"))
        return Ok(result.value)

    def list_commits(
        self,
        from_exclusive: str | None,
        to_inclusive: str,
        *,
        timeout: float,
    ) -> Result[Iterable[RawCommit], ReleaseError]:
        result = self._repo.log(from_exclusive, to_inclusive, path=self._path, timeout=timeout)
        if isinstance(result, Err):
            return Err(_to_release_error(result.error, message="cannot read commit history"))
        return Ok(_Commits(log=result.value))

    def latest_release(
        self, head: str, *, tag_prefix: str, timeout: float
    ) -> Result[tuple[str, SemVer] | None, ReleaseError]:
        """Highest ``<prefix>X.Y.Z`` tag reachable from head, if any."""
        result = self._repo.tags_merged_into(head, pattern=f"{tag_prefix}*", timeout=timeout)
        if isinstance(result, Err):
            return Err(_to_release_error(result.error, message="cannot list release tags"))
        return Ok(latest_version(result.value, prefix=tag_prefix))
