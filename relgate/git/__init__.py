"""Git access for history walking.

Usage:
    from relgate.git import Repository

    repo = Repository(Path("/path/to/repo"))
    head = repo.rev_parse("HEAD")
"""

from relgate.git.repository import GitError, GitLog, LogEntry, Repository

__all__ = [
    "GitError",
    "GitLog",
    "LogEntry",
    "Repository",
]
