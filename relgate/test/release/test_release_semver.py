from __future__ import annotations

from relgate.release.model import BumpKind
from relgate.release.semver import SemVer, latest_version, parse_tag, parse_version


def test_parse_version() -> None:
    assert parse_version("1.2.3") == SemVer(1, 2, 3)
    assert parse_version(" 0.10.0 ") == SemVer(0, 10, 0)
    assert parse_version("01.2.3") is None
    assert parse_version("1.2") is None
    assert parse_version("1.2.3-rc.1") is None


def test_parse_tag_prefix() -> None:
    assert parse_tag("v1.2.3") == SemVer(1, 2, 3)
    assert parse_tag("1.2.3", prefix="") == SemVer(1, 2, 3)
    assert parse_tag("pkg-v2.0.0", prefix="pkg-v") == SemVer(2, 0, 0)
    assert parse_tag("1.2.3") is None


def test_ordering() -> None:
    assert SemVer(1, 10, 0) > SemVer(1, 9, 9)
    assert SemVer(2, 0, 0) > SemVer(1, 99, 99)
    assert sorted([SemVer(0, 2, 0), SemVer(0, 1, 9)]) == [SemVer(0, 1, 9), SemVer(0, 2, 0)]


def test_bump() -> None:
    v = SemVer(1, 4, 2)
    assert v.bump(BumpKind.MAJOR) == SemVer(2, 0, 0)
    assert v.bump(BumpKind.MINOR) == SemVer(1, 5, 0)
    assert v.bump(BumpKind.PATCH) == SemVer(1, 4, 3)
    assert v.bump(BumpKind.NONE) is v


def test_str_and_tag() -> None:
    assert str(SemVer(1, 2, 3)) == "1.2.3"
    assert SemVer(1, 2, 3).to_tag() == "v1.2.3"
    assert SemVer(1, 2, 3).to_tag("lib-") == "lib-1.2.3"


def test_latest_version_ignores_other_tags() -> None:
    tags = ["v1.2.0", "v1.10.0", "v1.9.3", "v2.0.0-beta.1", "nightly", "x1.99.0"]
    assert latest_version(tags) == ("v1.10.0", SemVer(1, 10, 0))
    assert latest_version(["nightly"]) is None
