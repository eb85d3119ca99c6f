"""Git repository abstraction.

Read-only access to the pieces of a repository the release engine needs:
ref resolution, commit logs and release tags. All operations return Result
types and accept a timeout.

Usage:
    repo = Repository(Path("/path/to/repo"))

    match repo.rev_parse("HEAD", timeout=5.0):
        case Ok(sha):
            print(f"head is {sha}")
        case Err(e):
            print(f"Error: {e.message}")

    for entry in repo.log(None, head, timeout=5.0).unwrap():
        print(entry.sha, entry.message.splitlines()[0])
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from relgate.core.result import Err, Ok, Result
from relgate.platform.process import ProcessError
from relgate.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"--format=%H{_FIELD_SEP}%ct{_FIELD_SEP}%B{_RECORD_SEP}"

__all__ = [
    "GitError",
    "GitLog",
    "LogEntry",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
        timed_out: True if git did not finish in time
    """

    command: str
    message: str
    returncode: int = 1
    timed_out: bool = False


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One commit from git log."""

    sha: str
    timestamp: int
    message: str


@dataclass(frozen=True, slots=True)
class GitLog:
    """Captured ``git log`` output, parsed lazily on each iteration.

    Iterating is restartable: every pass re-parses the same captured text.
    """

    raw: str

    def __iter__(self) -> Iterator[LogEntry]:
        for record in self.raw.split(_RECORD_SEP):
            record = record.lstrip("\n")
            if not record:
                continue
            parts = record.split(_FIELD_SEP, 2)
            if len(parts) != 3:
                continue
            sha, ts, message = parts
            try:
                timestamp = int(ts)
            except ValueError:
                timestamp = 0
            yield LogEntry(sha=sha.strip(), timestamp=timestamp, message=message.rstrip("\n"))


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root (or any directory inside it)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a valid git repository."""
        return (self.path / ".git").exists()

    def rev_parse(
        self, ref: str, *, timeout: float = _GIT_TIMEOUT_SECONDS
    ) -> Result[str, GitError]:
        """Resolve ref to a full commit id (tags are peeled to their commit)."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], timeout)
        match result:
            case Err(e):
                return Err(self._error("rev-parse", e, f"unknown ref: {ref}"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def log(
        self,
        from_exclusive: str | None,
        to_inclusive: str,
        *,
        path: str | None = None,
        timeout: float = _GIT_TIMEOUT_SECONDS,
    ) -> Result[GitLog, GitError]:
        """List commits reachable from ``to_inclusive`` but not ``from_exclusive``.

        Newest first (git's default order). ``path`` restricts the log to
        commits touching that sub-path.
        """
        span = to_inclusive if from_exclusive is None else f"{from_exclusive}..{to_inclusive}"
        args = ["log", _LOG_FORMAT, span, "--"]
        if path:
            args.append(path)

        result = self._run(args, timeout)
        match result:
            case Err(e):
                return Err(self._error("log", e, "git log failed"))
            case Ok(stdout):
                return Ok(GitLog(raw=stdout))

    def tags_merged_into(
        self,
        ref: str,
        *,
        pattern: str = "*",
        timeout: float = _GIT_TIMEOUT_SECONDS,
    ) -> Result[list[str], GitError]:
        """Tags matching pattern whose commit is an ancestor of ref."""
        result = self._run(["tag", "--list", pattern, "--merged", ref], timeout)
        match result:
            case Err(e):
                return Err(self._error("tag", e, "git tag failed"))
            case Ok(stdout):
                return Ok([line.strip() for line in stdout.splitlines() if line.strip()])

    def _run(self, args: list[str], timeout: float) -> Result[str, ProcessError]:
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    @staticmethod
    def _error(command: str, e: ProcessError, fallback: str) -> GitError:
        return GitError(
            command=command,
            message=e.stderr.strip() or fallback,
            returncode=e.returncode,
            timed_out=e.timed_out,
        )
