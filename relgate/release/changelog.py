"""Changelog section builder.

Descriptors are grouped into ``breaking``, ``feature``, ``fix`` and ``other``
(in that order). Breaking changes are listed first and repeated under their
declared category. Within a category entries keep input order, which is
newest first as produced by the history walker.

``hidden_types`` only thins the ``other`` category; feature, fix and breaking
entries are always listed since they are what the release is made of.

Rendering takes no input besides the descriptors and the version decision
(no dates, no locale), so identical input renders byte-identical output.
The stored proposal hash depends on this.
"""

from __future__ import annotations

from collections.abc import Iterable

from relgate.release.model import (
    CATEGORY_ORDER,
    ChangeDescriptor,
    ChangelogCategory,
    ChangelogSection,
    ChangeType,
    VersionDecision,
)

CATEGORY_TITLES: dict[ChangelogCategory, str] = {
    "breaking": "⚠ BREAKING CHANGES",
    "feature": "Features",
    "fix": "Bug Fixes",
    "other": "Other Changes",
}

_DECLARED_CATEGORY: dict[ChangeType, ChangelogCategory] = {
    ChangeType.FEATURE: "feature",
    ChangeType.FIX: "fix",
    ChangeType.DOCS: "other",
    ChangeType.CHORE: "other",
    ChangeType.OTHER: "other",
    ChangeType.BREAKING: "other",
}


def render_entry(descriptor: ChangeDescriptor) -> str:
    scope = f"{descriptor.scope}: " if descriptor.scope else ""
    return f"{scope}{descriptor.summary} ({descriptor.short_id})"


def group_descriptors(
    descriptors: Iterable[ChangeDescriptor],
    *,
    hidden_types: frozenset[ChangeType] = frozenset(),
) -> tuple[tuple[ChangelogCategory, tuple[str, ...]], ...]:
    buckets: dict[ChangelogCategory, list[str]] = {c: [] for c in CATEGORY_ORDER}

    for d in descriptors:
        entry = render_entry(d)
        category = _DECLARED_CATEGORY[d.declared_type]
        if d.breaking:
            buckets["breaking"].append(entry)
        elif category == "other" and d.declared_type in hidden_types:
            continue
        buckets[category].append(entry)

    return tuple((c, tuple(buckets[c])) for c in CATEGORY_ORDER if buckets[c])


def render_markdown(
    decision: VersionDecision,
    groups: tuple[tuple[ChangelogCategory, tuple[str, ...]], ...],
) -> str:
    lines: list[str] = [f"## {decision.next} ({decision.bump.value}, from {decision.previous})"]
    for category, entries in groups:
        lines.append("")
        lines.append(f"### {CATEGORY_TITLES[category]}")
        lines.append("")
        lines.extend(f"* {entry}" for entry in entries)
    return "\n".join(lines) + "\n"


def build_changelog(
    descriptors: Iterable[ChangeDescriptor],
    decision: VersionDecision,
    *,
    hidden_types: frozenset[ChangeType] = frozenset(),
) -> ChangelogSection:
    groups = group_descriptors(descriptors, hidden_types=hidden_types)
    return ChangelogSection(
        version=str(decision.next),
        groups=groups,
        text=render_markdown(decision, groups),
    )
