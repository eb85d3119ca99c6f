"""Release decision engine.

Usage:
    from relgate.release import ReleaseCoordinator

    outcome = coordinator.run(timeout=60.0)
"""

from relgate.release.coordinator import ReleaseCoordinator, proposal_hash
from relgate.release.errors import ReleaseError
from relgate.release.events import OutboxEventSink
from relgate.release.review import FileReviewSurface
from relgate.release.store import JsonReleaseStateStore

__all__ = [
    "FileReviewSurface",
    "JsonReleaseStateStore",
    "OutboxEventSink",
    "ReleaseCoordinator",
    "ReleaseError",
    "proposal_hash",
]
