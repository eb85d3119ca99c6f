"""Process exit codes.

Every CLI command maps its outcome to one of these codes. The values are part
of the pipeline contract (CI steps branch on them) and must remain stable:
- 0: Success
- 1: User error (bad arguments, approval misuse)
- 2: Environment error (missing git, unreadable config)
- 3: History error (unresolvable refs)
- 4: Timeout (safe to retry the whole run)
- 5: State error (store could not be written)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    HISTORY_ERROR = 3
    TIMEOUT = 4
    STATE_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
