"""Release-created events and their outbox.

The outbox is the hand-off point to the publish executor: one JSON file per
event, named after the event id. Delivering an id that already exists is a
no-op, so an approval retried after a partial failure cannot produce a
second event.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path

from relgate.core.result import Err, Ok, Result
from relgate.core.structured import StrDict, as_str_dict, get_str
from relgate.platform.files import atomic_write_text, safe_file_name
from relgate.release.errors import ReleaseError
from relgate.release.model import PendingRelease, ReleaseCreated, SourceRange


def event_id_for(pending: PendingRelease) -> str:
    return f"{pending.target_id}@{pending.decision.next}+{pending.content_hash[:12]}"


def release_created(pending: PendingRelease, *, tag_prefix: str) -> ReleaseCreated:
    return ReleaseCreated(
        event_id=event_id_for(pending),
        target_id=pending.target_id,
        version=str(pending.decision.next),
        tag=pending.decision.next.to_tag(tag_prefix),
        changelog=pending.changelog.text,
        source_range=pending.source_range,
        content_hash=pending.content_hash,
    )


def event_to_dict(event: ReleaseCreated) -> dict[str, object]:
    return {
        "eventId": event.event_id,
        "targetId": event.target_id,
        "version": event.version,
        "tag": event.tag,
        "changelog": event.changelog,
        "sourceRange": {
            "fromRef": event.source_range.from_ref,
            "toRef": event.source_range.to_ref,
        },
        "contentHash": event.content_hash,
    }


def event_from_dict(d: StrDict) -> ReleaseCreated | None:
    """Parse an event document; None if any required field is missing."""
    source = as_str_dict(d.get("sourceRange"))
    changelog = d.get("changelog")
    fields = [get_str(d, k) for k in ("eventId", "targetId", "version", "tag", "contentHash")]
    to_ref = get_str(source, "toRef") if source is not None else None
    if source is None or to_ref is None or not isinstance(changelog, str):
        return None
    event_id, target_id, version, tag, content_hash = fields
    if event_id is None or target_id is None or version is None or tag is None:
        return None
    if content_hash is None:
        return None
    return ReleaseCreated(
        event_id=event_id,
        target_id=target_id,
        version=version,
        tag=tag,
        changelog=changelog,
        source_range=SourceRange(from_ref=get_str(source, "fromRef"), to_ref=to_ref),
        content_hash=content_hash,
    )


@dataclass
class OutboxEventSink:
    root: Path
    _guard: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def path_for(self, event: ReleaseCreated) -> Path:
        name = safe_file_name(f"{event.version}+{event.content_hash[:12]}")
        return self.root / "events" / safe_file_name(event.target_id) / f"{name}.json"

    def emit(self, event: ReleaseCreated) -> Result[bool, ReleaseError]:
        path = self.path_for(event)
        with self._guard:
            if path.exists():
                return Ok(False)
            try:
                atomic_write_text(
                    path, json.dumps(event_to_dict(event), indent=2) + "\n", encoding="utf-8"
                )
            except OSError as e:
                return Err(
                    ReleaseError(
                        kind="event_failed",
                        message=f"failed to emit release event: {e}",
                        hint=str(path),
                    )
                )
        return Ok(True)

    def delivered(self, target_id: str) -> list[str]:
        """Event ids already in the outbox for target_id, oldest file name first."""
        directory = self.root / "events" / safe_file_name(target_id)
        if not directory.is_dir():
            return []
        ids: list[str] = []
        for path in sorted(directory.glob("*.json")):
            try:
                d = as_str_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError):
                continue
            event_id = get_str(d, "eventId") if d is not None else None
            if event_id is not None:
                ids.append(event_id)
        return ids
