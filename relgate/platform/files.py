"""Filesystem helpers."""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "safe_file_name"]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace.

    Readers observe either the previous content or the new content, never a
    partially written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def safe_file_name(key: str) -> str:
    """Map an arbitrary key (e.g. ``@scope/pkg``) to a portable file stem.

    Unsafe characters are replaced with ``_`` and a short digest of the
    original key keeps distinct keys distinct.
    """
    cleaned = _UNSAFE_CHARS.sub("_", key).strip(".") or "_"
    if cleaned == key:
        return key
    suffix = hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]
    return f"{cleaned}-{suffix}"
