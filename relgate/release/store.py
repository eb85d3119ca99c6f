"""Durable release state, one JSON document per target id.

Layout: ``<root>/targets/<target>.json`` holding the pending release (if
any), the last published marker and a revision counter. Every write replaces
the whole document atomically (temp file + rename), so a crash mid-write
leaves the previous record intact.

Writers are serialized per target id, within a process by a reentrant lock
and across processes by a lock file next to the record
(``<root>/targets/<target>.lock``). Both acquisitions share one timeout.
Writes may also carry ``expected_revision``; the revision is checked under
both locks, so if another writer moved it the write is refused with
``store_write_conflict`` and the caller re-reads.
"""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import cast

from filelock import FileLock, Timeout

from relgate.core.result import Err, Ok, Result
from relgate.core.structured import StrDict, as_obj_list, as_str_dict, get_int, get_str
from relgate.platform.files import atomic_write_text, safe_file_name
from relgate.release.errors import ReleaseError
from relgate.release.events import event_from_dict, event_to_dict
from relgate.release.model import (
    CATEGORY_ORDER,
    BumpKind,
    ChangelogCategory,
    ChangelogSection,
    PendingRelease,
    PublishedMarker,
    ReleaseCreated,
    SourceRange,
    TargetRecord,
    VersionDecision,
)
from relgate.release.semver import SemVer, parse_version
from relgate.release.timeouts import STORE_LOCK_TIMEOUT_SECONDS

STORE_SCHEMA = 1

_BUMP_VALUES = {k.value: k for k in BumpKind}


class CorruptRecord(ValueError):
    pass


def _lock_timeout(target_id: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="timeout",
            message=f"timed out waiting for state lock: {target_id}",
            hint="Another run for this target is in progress.",
        )
    )


def _require_str(d: StrDict, key: str) -> str:
    value = get_str(d, key)
    if value is None:
        raise CorruptRecord(f"missing '{key}'")
    return value


def _require_version(d: StrDict, key: str) -> SemVer:
    version = parse_version(_require_str(d, key))
    if version is None:
        raise CorruptRecord(f"invalid version in '{key}'")
    return version


def pending_to_dict(pending: PendingRelease) -> dict[str, object]:
    return {
        "targetId": pending.target_id,
        "version": str(pending.decision.next),
        "previousVersion": str(pending.decision.previous),
        "bumpKind": pending.decision.bump.value,
        "changelog": pending.changelog.text,
        "sections": [
            {"category": category, "entries": list(entries)}
            for category, entries in pending.changelog.groups
        ],
        "fromRef": pending.source_range.from_ref,
        "toRef": pending.source_range.to_ref,
        "contentHash": pending.content_hash,
        "createdAt": pending.created_at,
    }


def pending_from_dict(d: StrDict) -> PendingRelease:
    bump = _BUMP_VALUES.get(_require_str(d, "bumpKind"))
    if bump is None:
        raise CorruptRecord("invalid 'bumpKind'")

    groups: list[tuple[ChangelogCategory, tuple[str, ...]]] = []
    for item in as_obj_list(d.get("sections")) or []:
        section = as_str_dict(item)
        if section is None:
            raise CorruptRecord("invalid changelog section")
        category = get_str(section, "category")
        if category not in CATEGORY_ORDER:
            raise CorruptRecord(f"unknown changelog category: {category!r}")
        entries = as_obj_list(section.get("entries")) or []
        groups.append((cast(ChangelogCategory, category), tuple(str(e) for e in entries)))

    version = _require_version(d, "version")
    changelog_text = d.get("changelog")
    if not isinstance(changelog_text, str):
        raise CorruptRecord("missing 'changelog'")

    return PendingRelease(
        target_id=_require_str(d, "targetId"),
        decision=VersionDecision(
            previous=_require_version(d, "previousVersion"),
            next=version,
            bump=bump,
        ),
        changelog=ChangelogSection(
            version=str(version), groups=tuple(groups), text=changelog_text
        ),
        source_range=SourceRange(
            from_ref=get_str(d, "fromRef"), to_ref=_require_str(d, "toRef")
        ),
        content_hash=_require_str(d, "contentHash"),
        created_at=_require_str(d, "createdAt"),
    )


def marker_to_dict(marker: PublishedMarker) -> dict[str, object]:
    return {
        "version": str(marker.version),
        "toRef": marker.to_ref,
        "tag": marker.tag,
        "publishedAt": marker.published_at,
    }


def marker_from_dict(d: StrDict) -> PublishedMarker:
    return PublishedMarker(
        version=_require_version(d, "version"),
        to_ref=_require_str(d, "toRef"),
        tag=_require_str(d, "tag"),
        published_at=_require_str(d, "publishedAt"),
    )


def record_to_dict(record: TargetRecord) -> dict[str, object]:
    return {
        "schema": STORE_SCHEMA,
        "targetId": record.target_id,
        "revision": record.revision,
        "pending": pending_to_dict(record.pending) if record.pending else None,
        "lastPublished": marker_to_dict(record.last_published) if record.last_published else None,
        "outbox": event_to_dict(record.outbox) if record.outbox else None,
    }


def record_from_dict(d: StrDict) -> TargetRecord:
    if get_int(d, "schema") != STORE_SCHEMA:
        raise CorruptRecord(f"unsupported schema: {d.get('schema')!r}")
    revision = get_int(d, "revision")
    if revision is None or revision < 0:
        raise CorruptRecord("invalid 'revision'")

    pending_d = as_str_dict(d.get("pending"))
    marker_d = as_str_dict(d.get("lastPublished"))
    outbox_d = as_str_dict(d.get("outbox"))
    outbox = event_from_dict(outbox_d) if outbox_d is not None else None
    if outbox_d is not None and outbox is None:
        raise CorruptRecord("invalid 'outbox'")
    return TargetRecord(
        target_id=_require_str(d, "targetId"),
        revision=revision,
        pending=pending_from_dict(pending_d) if pending_d is not None else None,
        last_published=marker_from_dict(marker_d) if marker_d is not None else None,
        outbox=outbox,
    )


class JsonReleaseStateStore:
    """Key-value store of TargetRecord documents keyed by target id."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._locks: dict[str, tuple[threading.RLock, FileLock]] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, target_id: str) -> Path:
        return self.root / "targets" / f"{safe_file_name(target_id)}.json"

    def lock_path_for(self, target_id: str) -> Path:
        return self.root / "targets" / f"{safe_file_name(target_id)}.lock"

    def _key_locks(self, target_id: str) -> tuple[threading.RLock, FileLock]:
        with self._locks_guard:
            locks = self._locks.get(target_id)
            if locks is None:
                # The file lock is only touched by the RLock holder, so its
                # recursion counter can be shared between threads.
                locks = (
                    threading.RLock(),
                    FileLock(self.lock_path_for(target_id), thread_local=False),
                )
                self._locks[target_id] = locks
            return locks

    @contextmanager
    def locked(
        self, target_id: str, *, timeout: float = STORE_LOCK_TIMEOUT_SECONDS
    ) -> Iterator[Result[None, ReleaseError]]:
        """Hold the per-target lock for a read-modify-write sequence.

        Yields Err(timeout) instead of blocking past ``timeout``; callers must
        check the yielded result before touching state.
        """
        thread_lock, file_lock = self._key_locks(target_id)
        expires_at = time.monotonic() + max(0.0, timeout)
        if not thread_lock.acquire(timeout=max(0.0, timeout)):
            yield _lock_timeout(target_id)
            return
        try:
            try:
                self.lock_path_for(target_id).parent.mkdir(parents=True, exist_ok=True)
                file_lock.acquire(timeout=max(0.0, expires_at - time.monotonic()))
            except Timeout:
                yield _lock_timeout(target_id)
                return
            except OSError as e:
                yield Err(
                    ReleaseError(
                        kind="store_failed",
                        message=f"failed to lock release state: {e}",
                        hint=str(self.lock_path_for(target_id)),
                    )
                )
                return
            try:
                yield Ok(None)
            finally:
                file_lock.release()
        finally:
            thread_lock.release()

    def read(self, target_id: str) -> Result[TargetRecord, ReleaseError]:
        """Load the full record; an absent file is an empty record at revision 0."""
        path = self.path_for(target_id)
        if not path.exists():
            return Ok(TargetRecord(target_id=target_id))

        try:
            obj: object = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return Err(
                ReleaseError(
                    kind="store_failed",
                    message=f"failed to read release state: {e}",
                    hint=str(path),
                )
            )

        d = as_str_dict(obj)
        if d is None:
            return Err(
                ReleaseError(
                    kind="store_failed",
                    message="invalid release state format",
                    hint=str(path),
                )
            )

        try:
            record = record_from_dict(d)
        except CorruptRecord as e:
            return Err(
                ReleaseError(
                    kind="store_failed",
                    message=f"corrupt release state: {e}",
                    hint=str(path),
                )
            )

        if record.target_id != target_id:
            return Err(
                ReleaseError(
                    kind="store_failed",
                    message=f"state file belongs to {record.target_id!r}, not {target_id!r}",
                    hint=str(path),
                )
            )
        return Ok(record)

    def get(self, target_id: str) -> PendingRelease | None:
        """Current pending release, or None (absent and unreadable alike)."""
        record = self.read(target_id)
        if isinstance(record, Err):
            return None
        return record.value.pending

    def upsert(
        self,
        target_id: str,
        pending: PendingRelease,
        *,
        expected_revision: int | None = None,
        timeout: float = STORE_LOCK_TIMEOUT_SECONDS,
    ) -> Result[TargetRecord, ReleaseError]:
        """Replace the pending release of target_id as a whole."""
        if pending.target_id != target_id:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=(
                        f"pending release for {pending.target_id!r} "
                        f"stored under {target_id!r}"
                    ),
                )
            )
        return self._update(
            target_id,
            lambda r: replace(r, pending=pending),
            expected_revision=expected_revision,
            timeout=timeout,
        )

    def clear(
        self,
        target_id: str,
        *,
        expected_revision: int | None = None,
        timeout: float = STORE_LOCK_TIMEOUT_SECONDS,
    ) -> Result[TargetRecord, ReleaseError]:
        """Drop the pending release; no write happens if there is none."""
        return self._update(
            target_id,
            lambda r: replace(r, pending=None) if r.pending is not None else None,
            expected_revision=expected_revision,
            timeout=timeout,
        )

    def mark_published(
        self,
        target_id: str,
        marker: PublishedMarker,
        event: ReleaseCreated,
        *,
        expected_revision: int | None = None,
        timeout: float = STORE_LOCK_TIMEOUT_SECONDS,
    ) -> Result[TargetRecord, ReleaseError]:
        """Publish transition in one write.

        Clears the pending release, advances the last published marker and
        parks ``event`` in the record outbox until ``ack_event`` confirms the
        sink has it.
        """
        return self._update(
            target_id,
            lambda r: replace(r, pending=None, last_published=marker, outbox=event),
            expected_revision=expected_revision,
            timeout=timeout,
        )

    def ack_event(
        self,
        target_id: str,
        event_id: str,
        *,
        timeout: float = STORE_LOCK_TIMEOUT_SECONDS,
    ) -> Result[TargetRecord, ReleaseError]:
        """Drop the outbox event once delivered; other ids are left alone."""
        return self._update(
            target_id,
            lambda r: (
                replace(r, outbox=None)
                if r.outbox is not None and r.outbox.event_id == event_id
                else None
            ),
            expected_revision=None,
            timeout=timeout,
        )

    def _update(
        self,
        target_id: str,
        change: Callable[[TargetRecord], TargetRecord | None],
        *,
        expected_revision: int | None,
        timeout: float,
    ) -> Result[TargetRecord, ReleaseError]:
        with self.locked(target_id, timeout=timeout) as held:
            if isinstance(held, Err):
                return held

            current = self.read(target_id)
            if isinstance(current, Err):
                return current
            record = current.value

            if expected_revision is not None and record.revision != expected_revision:
                return Err(
                    ReleaseError(
                        kind="store_write_conflict",
                        message=f"release state for {target_id} changed concurrently",
                        hint=f"expected revision {expected_revision}, found {record.revision}",
                    )
                )

            updated = change(record)
            if updated is None:
                return Ok(record)
            updated = replace(updated, revision=record.revision + 1)

            path = self.path_for(target_id)
            try:
                atomic_write_text(
                    path, json.dumps(record_to_dict(updated), indent=2) + "\n", encoding="utf-8"
                )
            except OSError as e:
                return Err(
                    ReleaseError(
                        kind="store_failed",
                        message=f"failed to write release state: {e}",
                        hint=str(path),
                    )
                )
            return Ok(updated)
