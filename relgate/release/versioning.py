"""Next-version decision from classified changes.

Precedence is major > minor > patch > none and the fold only keeps the
highest rank seen, so the result does not depend on descriptor order.

Pre-1.0 policy: while the previous major version is 0, a breaking change
bumps the minor component instead of releasing 1.0.0. Going to 1.0.0 is a
deliberate operator decision, never a side effect of a commit message.
"""

from __future__ import annotations

from collections.abc import Iterable

from relgate.release.model import BumpKind, ChangeDescriptor, ChangeType, VersionDecision
from relgate.release.semver import SemVer


def bump_for(descriptor: ChangeDescriptor) -> BumpKind:
    if descriptor.breaking:
        return BumpKind.MAJOR
    if descriptor.type is ChangeType.FEATURE:
        return BumpKind.MINOR
    if descriptor.type is ChangeType.FIX:
        return BumpKind.PATCH
    return BumpKind.NONE


def required_bump(descriptors: Iterable[ChangeDescriptor]) -> BumpKind:
    """Highest bump triggered by any descriptor (stops early at major)."""
    best = BumpKind.NONE
    for descriptor in descriptors:
        kind = bump_for(descriptor)
        if kind.rank > best.rank:
            best = kind
            if best is BumpKind.MAJOR:
                break
    return best


def apply_pre_major_policy(previous: SemVer, kind: BumpKind) -> BumpKind:
    if kind is BumpKind.MAJOR and previous.major == 0:
        return BumpKind.MINOR
    return kind


def decide_version(previous: SemVer, descriptors: Iterable[ChangeDescriptor]) -> VersionDecision:
    kind = apply_pre_major_policy(previous, required_bump(descriptors))
    return VersionDecision(previous=previous, next=previous.bump(kind), bump=kind)
