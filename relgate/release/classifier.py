"""Conventional commit classification.

Pure: depends only on ``re`` and the model. Classification is total: any
string, including an empty one, maps to a descriptor. Headers that do not
follow ``<type>[(scope)][!]: <summary>`` with a known type become ``other``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from functools import lru_cache

from relgate.release.model import ChangeDescriptor, ChangeType, RawCommit

DEFAULT_BREAKING_MARKERS: tuple[str, ...] = ("BREAKING CHANGE", "BREAKING-CHANGE")

HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)"
    r"(?:\((?P<scope>[^()\r\n]*)\))?"
    r"(?P<bang>!)?"
    r":\s*"
    r"(?P<summary>\S.*)$"
)

TYPE_TOKENS: dict[str, ChangeType] = {
    "feat": ChangeType.FEATURE,
    "feature": ChangeType.FEATURE,
    "fix": ChangeType.FIX,
    "docs": ChangeType.DOCS,
    "chore": ChangeType.CHORE,
    # Known conventional types without a dedicated category.
    "perf": ChangeType.OTHER,
    "refactor": ChangeType.OTHER,
    "style": ChangeType.OTHER,
    "test": ChangeType.OTHER,
    "build": ChangeType.OTHER,
    "ci": ChangeType.OTHER,
    "revert": ChangeType.OTHER,
}


@lru_cache(maxsize=16)
def _footer_re(markers: tuple[str, ...]) -> re.Pattern[str] | None:
    if not markers:
        return None
    alternatives = "|".join(re.escape(m) for m in markers)
    return re.compile(rf"^(?:{alternatives})\s*:", re.MULTILINE)


def split_message(message: str) -> tuple[str, str]:
    """Split a commit message into (header, body); leading blank lines are skipped."""
    text = message.lstrip("\r\n")
    header, _, body = text.partition("\n")
    return header.strip(), body


def classify_commit(
    commit: RawCommit,
    *,
    breaking_markers: tuple[str, ...] = DEFAULT_BREAKING_MARKERS,
) -> ChangeDescriptor:
    header, body = split_message(commit.message)

    m = HEADER_RE.match(header)
    declared = TYPE_TOKENS.get(m.group("type").lower()) if m is not None else None
    if m is None or declared is None:
        return ChangeDescriptor(
            id=commit.id,
            type=ChangeType.OTHER,
            scope=None,
            summary=header,
            breaking=False,
            declared_type=ChangeType.OTHER,
        )

    scope = (m.group("scope") or "").strip() or None
    footer = _footer_re(breaking_markers)
    breaking = m.group("bang") is not None or (
        footer is not None and footer.search(body) is not None
    )

    return ChangeDescriptor(
        id=commit.id,
        type=ChangeType.BREAKING if breaking else declared,
        scope=scope,
        summary=m.group("summary").strip(),
        breaking=breaking,
        declared_type=declared,
    )


def classify_all(
    commits: Iterable[RawCommit],
    *,
    breaking_markers: tuple[str, ...] = DEFAULT_BREAKING_MARKERS,
) -> Iterator[ChangeDescriptor]:
    """Lazily classify a commit sequence, preserving its order."""
    for commit in commits:
        yield classify_commit(commit, breaking_markers=breaking_markers)
