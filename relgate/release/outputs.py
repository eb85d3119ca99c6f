"""GitHub Actions step outputs.

The publish job of the pipeline is gated on ``release_created``; the other
keys give it the tag and version to publish.
"""

from __future__ import annotations

from pathlib import Path

from relgate.core.result import Err, Ok, Result
from relgate.release.errors import ReleaseError
from relgate.release.model import ReleaseCreated
from relgate.release.semver import parse_version


def github_outputs(event: ReleaseCreated | None) -> list[tuple[str, str]]:
    if event is None:
        return [("release_created", "false")]

    outputs = [
        ("release_created", "true"),
        ("target_id", event.target_id),
        ("tag_name", event.tag),
        ("version", event.version),
    ]
    v = parse_version(event.version)
    if v is not None:
        outputs += [("major", str(v.major)), ("minor", str(v.minor)), ("patch", str(v.patch))]
    outputs.append(("changelog", event.changelog))
    return outputs


def format_outputs(outputs: list[tuple[str, str]], *, delimiter: str) -> str:
    lines: list[str] = []
    for key, value in outputs:
        if "\n" in value:
            lines.append(f"{key}<<{delimiter}")
            lines.append(value.rstrip("\n"))
            lines.append(delimiter)
        else:
            lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


def write_github_outputs(path: Path, event: ReleaseCreated | None) -> Result[None, ReleaseError]:
    """Append outputs to the file named by ``$GITHUB_OUTPUT``."""
    delimiter = f"RELGATE_EOF_{event.content_hash[:12]}" if event else "RELGATE_EOF"
    text = format_outputs(github_outputs(event), delimiter=delimiter)
    try:
        with path.open("a", encoding="utf-8") as handle:
            handle.write(text)
    except OSError as e:
        return Err(
            ReleaseError(
                kind="event_failed",
                message=f"failed to write step outputs: {e}",
                hint=str(path),
            )
        )
    return Ok(None)
