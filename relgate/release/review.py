"""File-backed review surface.

``present`` writes the proposal as Markdown for humans to read (CI can post
it as a PR comment or job summary). The human side answers with
``record_decision`` (``relgate review approve|reject``), which stores the
decision together with the content hash of the proposal that was reviewed.
Presenting a new proposal discards any earlier decision.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from relgate.core.result import Err, Ok, Result
from relgate.core.structured import as_str_dict, get_str
from relgate.platform.files import atomic_write_text, safe_file_name
from relgate.release.errors import ReleaseError
from relgate.release.interfaces import ApprovalSignal
from relgate.release.model import PendingRelease

Decision = Literal["approved", "rejected"]


def render_proposal(pending: PendingRelease) -> str:
    d = pending.decision
    lines = [
        f"# Release proposal: {pending.target_id} {d.next}",
        "",
        f"- Previous version: {d.previous}",
        f"- Bump: {d.bump.value}",
        f"- Commits: {pending.source_range.pretty()}",
        f"- Content hash: `{pending.content_hash}`",
        "",
        pending.changelog.text.rstrip(),
        "",
        "Approve with:",
        "",
        f"    relgate review approve {pending.target_id} --hash {pending.content_hash}",
    ]
    return "\n".join(lines) + "\n"


@dataclass(frozen=True, slots=True)
class FileReviewSurface:
    root: Path

    def proposal_path(self, target_id: str) -> Path:
        return self.root / "review" / f"{safe_file_name(target_id)}.md"

    def decision_path(self, target_id: str) -> Path:
        return self.root / "review" / f"{safe_file_name(target_id)}.decision.json"

    def present(self, target_id: str, pending: PendingRelease) -> Result[None, ReleaseError]:
        proposal = self.proposal_path(target_id)
        try:
            atomic_write_text(proposal, render_proposal(pending), encoding="utf-8")
            self.decision_path(target_id).unlink(missing_ok=True)
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="review_failed",
                    message=f"failed to publish proposal for review: {e}",
                    hint=str(proposal),
                )
            )
        return Ok(None)

    def withdraw(self, target_id: str) -> Result[None, ReleaseError]:
        """Remove the proposal and any decision (after publish or a no-op run)."""
        try:
            self.proposal_path(target_id).unlink(missing_ok=True)
            self.decision_path(target_id).unlink(missing_ok=True)
        except OSError as e:
            return Err(
                ReleaseError(kind="review_failed", message=f"failed to withdraw proposal: {e}")
            )
        return Ok(None)

    def record_decision(
        self, target_id: str, decision: Decision, content_hash: str
    ) -> Result[None, ReleaseError]:
        path = self.decision_path(target_id)
        payload = {"status": decision, "contentHash": content_hash}
        try:
            atomic_write_text(path, json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="review_failed",
                    message=f"failed to record review decision: {e}",
                    hint=str(path),
                )
            )
        return Ok(None)

    def await_approval(self, target_id: str) -> Result[ApprovalSignal, ReleaseError]:
        path = self.decision_path(target_id)
        if not path.exists():
            return Ok(ApprovalSignal(status="pending"))

        try:
            obj: object = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return Err(
                ReleaseError(
                    kind="review_failed",
                    message=f"failed to read review decision: {e}",
                    hint=str(path),
                )
            )

        d = as_str_dict(obj)
        status = get_str(d, "status") if d is not None else None
        content_hash = get_str(d, "contentHash") if d is not None else None
        if status == "approved":
            return Ok(ApprovalSignal(status="approved", content_hash=content_hash))
        if status == "rejected":
            return Ok(ApprovalSignal(status="rejected", content_hash=content_hash))
        return Err(
            ReleaseError(
                kind="review_failed",
                message=f"invalid review decision: {status!r}",
                hint=str(path),
            )
        )
