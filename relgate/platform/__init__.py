"""Process and filesystem primitives."""

from .files import atomic_write_text, safe_file_name
from .process import ProcessError, run

__all__ = [
    # files
    "atomic_write_text",
    "safe_file_name",
    # process
    "ProcessError",
    "run",
]
