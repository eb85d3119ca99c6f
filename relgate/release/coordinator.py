"""Per-target release state machine.

States: IDLE -> PROPOSED -> (unchanged: PROPOSED) / (approved: IDLE with the
last published marker advanced). ``run`` computes a proposal from history,
``approve`` publishes it exactly once, ``poll`` applies a decision recorded on
the review surface.

The publish transition is a single store write that clears the pending
release, advances the marker and parks the release event in the record
outbox. The event is delivered afterwards and acknowledged; an event left
behind by a crash is delivered by the next ``run``, ``approve`` or ``poll``.
The sink dedupes by event id, so delivery can be repeated safely.
"""

from __future__ import annotations

import hashlib
import json
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TypeVar

from relgate.core.result import Err, Ok, Result
from relgate.output.console import ConsoleProtocol, Style
from relgate.release.changelog import build_changelog
from relgate.release.classifier import DEFAULT_BREAKING_MARKERS, classify_all
from relgate.release.errors import ReleaseError
from relgate.release.events import release_created
from relgate.release.history import HistoryWalker
from relgate.release.interfaces import EventSink, ReviewSurface, TagSource
from relgate.release.model import (
    ChangelogSection,
    ChangeType,
    PendingRelease,
    PollOutcome,
    PublishedMarker,
    ReleaseCreated,
    ReleaseTarget,
    RunOutcome,
    SourceRange,
    TargetRecord,
    VersionDecision,
)
from relgate.release.semver import SemVer
from relgate.release.store import JsonReleaseStateStore
from relgate.release.timeouts import (
    GIT_TIMEOUT_SECONDS,
    RUN_TIMEOUT_SECONDS,
    STORE_LOCK_TIMEOUT_SECONDS,
    STORE_RETRY_ATTEMPTS,
    STORE_RETRY_DELAY_SECONDS,
    Deadline,
)
from relgate.release.versioning import decide_version

T = TypeVar("T")


def proposal_hash(
    decision: VersionDecision, changelog: ChangelogSection, source_range: SourceRange
) -> str:
    """sha256 over a canonical JSON form of the decision, changelog and range.

    The range is part of the identity: an approval names one hash, so it can
    only ever publish the commits that were on screen when it was given.
    """
    payload = {
        "fromRef": source_range.from_ref,
        "toRef": source_range.to_ref,
        "previous": str(decision.previous),
        "next": str(decision.next),
        "bump": decision.bump.value,
        "sections": [[category, list(entries)] for category, entries in changelog.groups],
        "text": changelog.text,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _deadline_error(step: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="timeout",
            message=f"deadline expired before {step}",
            hint="Re-run; no state was changed.",
        )
    )


class ReleaseCoordinator:
    def __init__(
        self,
        *,
        target: ReleaseTarget,
        walker: HistoryWalker,
        store: JsonReleaseStateStore,
        review: ReviewSurface,
        events: EventSink,
        console: ConsoleProtocol,
        tags: TagSource | None = None,
        breaking_markers: tuple[str, ...] = DEFAULT_BREAKING_MARKERS,
        hidden_types: frozenset[ChangeType] = frozenset(),
        retry_attempts: int = STORE_RETRY_ATTEMPTS,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.target = target
        self._walker = walker
        self._store = store
        self._review = review
        self._events = events
        self._console = console
        self._tags = tags
        self._breaking_markers = breaking_markers
        self._hidden_types = hidden_types
        self._retry_attempts = max(1, retry_attempts)
        self._clock = clock
        self._sleep = sleep

    @property
    def target_id(self) -> str:
        return self.target.id

    # -- public transitions ------------------------------------------------

    def status(self) -> Result[TargetRecord, ReleaseError]:
        return self._store.read(self.target_id)

    def run(self, *, timeout: float = RUN_TIMEOUT_SECONDS) -> Result[RunOutcome, ReleaseError]:
        deadline = Deadline.after(timeout)
        flushed = self.flush_outbox(deadline=deadline)
        if isinstance(flushed, Err):
            return flushed
        return self._with_retries(lambda: self._run_once(deadline), deadline=deadline)

    def approve(
        self, content_hash: str, *, timeout: float = RUN_TIMEOUT_SECONDS
    ) -> Result[ReleaseCreated, ReleaseError]:
        deadline = Deadline.after(timeout)
        flushed = self.flush_outbox(deadline=deadline)
        if isinstance(flushed, Err):
            return flushed
        return self._with_retries(
            lambda: self._approve_once(content_hash, deadline), deadline=deadline
        )

    def poll(self, *, timeout: float = RUN_TIMEOUT_SECONDS) -> Result[PollOutcome, ReleaseError]:
        """Apply the decision recorded on the review surface, if any."""
        deadline = Deadline.after(timeout)
        flushed = self.flush_outbox(deadline=deadline)
        if isinstance(flushed, Err):
            return flushed

        current = self._store.read(self.target_id)
        if isinstance(current, Err):
            return current
        pending = current.value.pending
        if pending is None:
            return Ok(PollOutcome(target_id=self.target_id, status="idle"))

        signal = self._review.await_approval(self.target_id)
        if isinstance(signal, Err):
            return signal

        match signal.value.status:
            case "pending":
                return Ok(PollOutcome(target_id=self.target_id, status="pending"))
            case "rejected":
                if signal.value.content_hash not in (None, pending.content_hash):
                    # Decision about an older proposal.
                    return Ok(PollOutcome(target_id=self.target_id, status="pending"))
                self._console.warning(
                    f"{self.target_id}: proposal {pending.decision.next} rejected"
                )
                return Ok(PollOutcome(target_id=self.target_id, status="rejected"))
            case "approved":
                approved_hash = signal.value.content_hash
                if approved_hash is None:
                    return Err(
                        ReleaseError(
                            kind="stale_approval",
                            message=f"approval for {self.target_id} names no proposal",
                            hint="Approve with the content hash shown in the proposal.",
                        )
                    )
                published = self._with_retries(
                    lambda: self._approve_once(approved_hash, deadline), deadline=deadline
                )
                if isinstance(published, Err):
                    return published
                outcome = PollOutcome(
                    target_id=self.target_id, status="published", event=published.value
                )
                return Ok(outcome)

    def flush_outbox(self, *, deadline: Deadline) -> Result[ReleaseCreated | None, ReleaseError]:
        """Deliver an event left in the outbox by an interrupted approval."""
        current = self._store.read(self.target_id)
        if isinstance(current, Err):
            return current
        event = current.value.outbox
        if event is None:
            return Ok(None)

        self._console.print(f"{self.target_id}: delivering event {event.event_id}", Style.DIM)
        delivered = self._deliver(event, deadline=deadline)
        if isinstance(delivered, Err):
            return delivered
        return Ok(event)

    # -- steps ---------------------------------------------------------------

    def _with_retries(
        self, step: Callable[[], Result[T, ReleaseError]], *, deadline: Deadline
    ) -> Result[T, ReleaseError]:
        """Re-run ``step`` on write conflicts; each attempt re-reads state."""
        result = step()
        for attempt in range(1, self._retry_attempts):
            if isinstance(result, Ok) or result.error.kind != "store_write_conflict":
                return result
            if deadline.expired:
                return result
            self._console.print(
                f"{self.target_id}: state changed concurrently, retrying ({attempt})", Style.DIM
            )
            self._sleep(STORE_RETRY_DELAY_SECONDS * attempt)
            result = step()
        return result

    def _store_timeout(self, deadline: Deadline) -> float:
        return deadline.bound(STORE_LOCK_TIMEOUT_SECONDS)

    def _now(self) -> str:
        return self._clock().isoformat(timespec="seconds")

    def _baseline(
        self, record: TargetRecord, *, deadline: Deadline
    ) -> Result[tuple[str | None, SemVer], ReleaseError]:
        """Where history starts: published marker, else latest tag, else root."""
        marker = record.last_published
        if marker is not None:
            return Ok((marker.to_ref, marker.version))

        if self._tags is not None:
            if deadline.expired:
                return _deadline_error("listing release tags")
            latest = self._tags.latest_release(
                self.target.head,
                tag_prefix=self.target.tag_prefix,
                timeout=deadline.bound(GIT_TIMEOUT_SECONDS),
            )
            if isinstance(latest, Err):
                return latest
            if latest.value is not None:
                tag, version = latest.value
                return Ok((tag, version))

        return Ok((None, self.target.initial_version))

    def _run_once(self, deadline: Deadline) -> Result[RunOutcome, ReleaseError]:
        target_id = self.target_id
        current = self._store.read(target_id)
        if isinstance(current, Err):
            return current
        record = current.value

        baseline = self._baseline(record, deadline=deadline)
        if isinstance(baseline, Err):
            return baseline
        from_ref, previous = baseline.value

        walked = self._walker.walk(from_ref, self.target.head, deadline=deadline)
        if isinstance(walked, Err):
            return walked
        source_range = walked.value.source_range

        descriptors = tuple(classify_all(walked.value, breaking_markers=self._breaking_markers))
        decision = decide_version(previous, descriptors)

        if not decision.is_release:
            return self._settle_idle(record, decision, source_range, deadline=deadline)

        changelog = build_changelog(descriptors, decision, hidden_types=self._hidden_types)
        content_hash = proposal_hash(decision, changelog, source_range)

        existing = record.pending
        if (
            existing is not None
            and existing.content_hash == content_hash
            and existing.source_range == source_range
        ):
            self._console.print(
                f"{target_id}: proposal {decision.next} unchanged ({source_range.pretty()})",
                Style.DIM,
            )
            return Ok(
                RunOutcome(
                    target_id=target_id, action="unchanged", decision=decision, pending=existing
                )
            )

        pending = PendingRelease(
            target_id=target_id,
            decision=decision,
            changelog=changelog,
            source_range=source_range,
            content_hash=content_hash,
            created_at=self._now(),
        )
        if deadline.expired:
            return _deadline_error("storing the proposal")
        written = self._store.upsert(
            target_id,
            pending,
            expected_revision=record.revision,
            timeout=self._store_timeout(deadline),
        )
        if isinstance(written, Err):
            return written

        presented = self._review.present(target_id, pending)
        if isinstance(presented, Err):
            return self._roll_back(existing, written.value.revision, presented.error)

        self._console.success(
            f"{target_id}: proposed {decision.next} "
            f"({decision.bump.value}, from {decision.previous}, {source_range.pretty()})"
        )
        return Ok(
            RunOutcome(target_id=target_id, action="proposed", decision=decision, pending=pending)
        )

    def _settle_idle(
        self,
        record: TargetRecord,
        decision: VersionDecision,
        source_range: SourceRange,
        *,
        deadline: Deadline,
    ) -> Result[RunOutcome, ReleaseError]:
        target_id = self.target_id
        stale = record.pending
        if stale is None:
            self._console.print(
                f"{target_id}: no releasable changes ({source_range.pretty()})", Style.DIM
            )
            return Ok(RunOutcome(target_id=target_id, action="idle", decision=decision))

        if deadline.expired:
            return _deadline_error("clearing the stale proposal")
        cleared = self._store.clear(
            target_id, expected_revision=record.revision, timeout=self._store_timeout(deadline)
        )
        if isinstance(cleared, Err):
            return cleared
        withdrawn = self._review.withdraw(target_id)
        if isinstance(withdrawn, Err):
            self._console.warning(f"{target_id}: {withdrawn.error.pretty()}")
        self._console.warning(
            f"{target_id}: cleared stale proposal {stale.decision.next} (no releasable changes)"
        )
        return Ok(RunOutcome(target_id=target_id, action="cleared", decision=decision))

    def _roll_back(
        self, previous: PendingRelease | None, revision: int, cause: ReleaseError
    ) -> Err[ReleaseError]:
        """Undo an upsert whose proposal could not be presented."""
        target_id = self.target_id
        if previous is not None:
            undone = self._store.upsert(target_id, previous, expected_revision=revision)
        else:
            undone = self._store.clear(target_id, expected_revision=revision)

        if isinstance(undone, Err):
            return Err(
                ReleaseError(
                    kind=cause.kind,
                    message=f"{cause.message}; rollback failed: {undone.error.message}",
                    hint=undone.error.hint or cause.hint,
                )
            )
        return Err(cause)

    def _approve_once(
        self, content_hash: str, deadline: Deadline
    ) -> Result[ReleaseCreated, ReleaseError]:
        target_id = self.target_id
        current = self._store.read(target_id)
        if isinstance(current, Err):
            return current
        record = current.value

        pending = record.pending
        if pending is None:
            return Err(
                ReleaseError(
                    kind="no_pending_release",
                    message=f"no pending release for {target_id}",
                    hint="Run `relgate run` to compute a proposal first.",
                )
            )
        if pending.content_hash != content_hash:
            return Err(
                ReleaseError(
                    kind="stale_approval",
                    message=(
                        f"approval for {content_hash[:12]} does not match the current "
                        f"proposal {pending.content_hash[:12]} ({pending.decision.next})"
                    ),
                    hint="Review the current proposal and approve its content hash.",
                )
            )

        event = release_created(pending, tag_prefix=self.target.tag_prefix)
        marker = PublishedMarker(
            version=pending.decision.next,
            to_ref=pending.source_range.to_ref,
            tag=event.tag,
            published_at=self._now(),
        )
        if deadline.expired:
            return _deadline_error("publishing the release")
        written = self._store.mark_published(
            target_id,
            marker,
            event,
            expected_revision=record.revision,
            timeout=self._store_timeout(deadline),
        )
        if isinstance(written, Err):
            return written

        self._console.success(f"{target_id}: released {event.tag}")
        delivered = self._deliver(event, deadline=deadline)
        if isinstance(delivered, Err):
            # The event is durable in the outbox; the next invocation delivers it.
            self._console.warning(
                f"{target_id}: event delivery deferred: {delivered.error.pretty()}"
            )
        return Ok(event)

    def _deliver(self, event: ReleaseCreated, *, deadline: Deadline) -> Result[bool, ReleaseError]:
        emitted = self._events.emit(event)
        if isinstance(emitted, Err):
            return emitted
        if not emitted.value:
            self._console.print(
                f"{self.target_id}: event {event.event_id} already delivered", Style.DIM
            )

        acked = self._store.ack_event(
            self.target_id, event.event_id, timeout=self._store_timeout(deadline)
        )
        if isinstance(acked, Err):
            return acked
        return Ok(emitted.value)
