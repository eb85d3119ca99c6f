from __future__ import annotations

import itertools

import pytest

from relgate.release.classifier import classify_commit
from relgate.release.model import BumpKind, ChangeDescriptor, RawCommit
from relgate.release.semver import SemVer
from relgate.release.versioning import (
    apply_pre_major_policy,
    bump_for,
    decide_version,
    required_bump,
)


def _d(message: str, n: int = 0) -> ChangeDescriptor:
    return classify_commit(RawCommit(id=f"{n:040x}", message=message, timestamp=n))


def test_bump_for() -> None:
    assert bump_for(_d("feat!: x")) is BumpKind.MAJOR
    assert bump_for(_d("feat: x")) is BumpKind.MINOR
    assert bump_for(_d("fix: x")) is BumpKind.PATCH
    assert bump_for(_d("docs: x")) is BumpKind.NONE
    assert bump_for(_d("chore: x\n\nBREAKING CHANGE: y")) is BumpKind.MAJOR


@pytest.mark.parametrize(
    ("messages", "expected"),
    [
        ([], BumpKind.NONE),
        (["docs: a", "chore: b", "refactor: c", "random"], BumpKind.NONE),
        (["fix: a", "docs: b"], BumpKind.PATCH),
        (["fix: a", "feat: b"], BumpKind.MINOR),
        (["fix: a", "feat: b", "perf!: c"], BumpKind.MAJOR),
    ],
)
def test_required_bump_precedence(messages: list[str], expected: BumpKind) -> None:
    assert required_bump(_d(m, i) for i, m in enumerate(messages)) is expected


def test_required_bump_is_order_independent() -> None:
    descriptors = [_d("docs: a", 1), _d("fix: b", 2), _d("feat: c", 3), _d("chore: d", 4)]
    results = {required_bump(p) for p in itertools.permutations(descriptors)}
    assert results == {BumpKind.MINOR}


def test_minor_release_example() -> None:
    descriptors = [_d("fix: null check", 1), _d("feat: add export", 2)]
    decision = decide_version(SemVer(1, 4, 2), descriptors)
    assert decision.previous == SemVer(1, 4, 2)
    assert decision.next == SemVer(1, 5, 0)
    assert decision.bump is BumpKind.MINOR
    assert decision.is_release


def test_pre_major_breaking_bumps_minor() -> None:
    decision = decide_version(SemVer(0, 9, 0), [_d("feat!: remove legacy API")])
    assert decision.next == SemVer(0, 10, 0)
    assert decision.bump is BumpKind.MINOR


def test_breaking_after_1_0_bumps_major() -> None:
    decision = decide_version(SemVer(1, 4, 2), [_d("fix!: drop py3.10")])
    assert decision.next == SemVer(2, 0, 0)
    assert decision.bump is BumpKind.MAJOR


def test_pre_major_policy_only_touches_major() -> None:
    zero = SemVer(0, 3, 1)
    assert apply_pre_major_policy(zero, BumpKind.MAJOR) is BumpKind.MINOR
    assert apply_pre_major_policy(zero, BumpKind.MINOR) is BumpKind.MINOR
    assert apply_pre_major_policy(zero, BumpKind.PATCH) is BumpKind.PATCH
    assert apply_pre_major_policy(SemVer(1, 0, 0), BumpKind.MAJOR) is BumpKind.MAJOR


def test_no_release_keeps_version() -> None:
    decision = decide_version(SemVer(2, 1, 0), [_d("docs: readme"), _d("chore: ci")])
    assert decision.bump is BumpKind.NONE
    assert decision.next == decision.previous
    assert not decision.is_release


def test_next_is_greater_whenever_released() -> None:
    for previous in (SemVer(0, 0, 0), SemVer(0, 9, 9), SemVer(1, 4, 2)):
        for message in ("fix: a", "feat: a", "feat!: a"):
            decision = decide_version(previous, [_d(message)])
            assert decision.next > decision.previous
