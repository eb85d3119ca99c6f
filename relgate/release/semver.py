from __future__ import annotations

import re
from dataclasses import dataclass

from relgate.release.model import BumpKind

_VERSION_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def to_tag(self, prefix: str = "v") -> str:
        return f"{prefix}{self}"

    def bump(self, kind: BumpKind) -> SemVer:
        match kind:
            case BumpKind.MAJOR:
                return SemVer(self.major + 1, 0, 0)
            case BumpKind.MINOR:
                return SemVer(self.major, self.minor + 1, 0)
            case BumpKind.PATCH:
                return SemVer(self.major, self.minor, self.patch + 1)
            case BumpKind.NONE:
                return self


def parse_version(text: str) -> SemVer | None:
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def parse_tag(tag: str, *, prefix: str = "v") -> SemVer | None:
    """Parse ``<prefix>MAJOR.MINOR.PATCH``; pre-release tags are not releases."""
    if not tag.startswith(prefix):
        return None
    return parse_version(tag[len(prefix) :])


def latest_version(tags: list[str], *, prefix: str = "v") -> tuple[str, SemVer] | None:
    best: tuple[str, SemVer] | None = None
    for tag in tags:
        v = parse_tag(tag, prefix=prefix)
        if v is None:
            continue
        if best is None or v > best[1]:
            best = (tag, v)
    return best
