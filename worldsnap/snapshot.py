"""
Snapshot Writer

Creates one new snapshot branch capturing the current world tree.
Snapshots are immutable once written; an id that already exists is
refused rather than overwritten.
"""

import logging
from datetime import datetime

from .catalog import SnapshotId
from .identity import read_world_id

logger = logging.getLogger(__name__)


class SnapshotExistsError(ValueError):
    """Raised when a snapshot branch with the same id is already present."""

    def __init__(self, sid: SnapshotId):
        super().__init__(f"Snapshot already exists: {sid.branch_name}")
        self.sid = sid


def commit_message(sid: SnapshotId) -> str:
    return f"Snapshot of world {sid.world_id} at {sid.date_str} UTC"


def write_snapshot(repo, backend, now: datetime | None = None) -> SnapshotId:
    """Commit the working tree as a new snapshot. Preflight must have run."""
    world_id = read_world_id(repo.root)
    sid = SnapshotId.create(world_id, now)
    if sid.ref in repo.git.refs:
        raise SnapshotExistsError(sid)
    logger.info("Creating snapshot %s (%s)", sid, backend.mode.value)
    backend.commit_snapshot(repo, sid, commit_message(sid))
    return sid
