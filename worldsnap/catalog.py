"""
Snapshot Catalog

A snapshot is one branch named snapshots/<world-id>/<timestamp>.
SnapshotId is the parsed form of that name; the catalog groups ids
by world and is always rebuilt from the refs it is given, never cached.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "snapshots"
HEADS_PREFIX = "refs/heads/"
DATE_FORMAT = "%Y-%m-%d_%H-%M-%S"


@dataclass(frozen=True, order=True)
class SnapshotId:
    """Identifies one snapshot. Ordered by timestamp, then world id."""

    timestamp: datetime
    world_id: str

    @classmethod
    def create(cls, world_id: str, now: datetime | None = None) -> "SnapshotId":
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return cls(world_id=world_id, timestamp=now.replace(microsecond=0))

    @classmethod
    def parse(cls, branch_name: str) -> "SnapshotId":
        """Parse a branch name (with or without refs/heads/)."""
        if branch_name.startswith(HEADS_PREFIX):
            branch_name = branch_name[len(HEADS_PREFIX):]
        parts = branch_name.split("/")
        if len(parts) != 3 or parts[0] != BRANCH_PREFIX or not parts[1]:
            raise ValueError(f"Not a snapshot branch: {branch_name!r}")
        try:
            timestamp = datetime.strptime(parts[2], DATE_FORMAT)
        except ValueError:
            raise ValueError(f"Bad snapshot timestamp in branch {branch_name!r}") from None
        return cls(world_id=parts[1], timestamp=timestamp)

    @property
    def date_str(self) -> str:
        return self.timestamp.strftime(DATE_FORMAT)

    @property
    def branch_name(self) -> str:
        return f"{BRANCH_PREFIX}/{self.world_id}/{self.date_str}"

    @property
    def ref(self) -> bytes:
        return (HEADS_PREFIX + self.branch_name).encode("utf-8")

    def __str__(self):
        return self.branch_name


def build_catalog(branch_names) -> dict[str, list[SnapshotId]]:
    """Group snapshot branches by world id, each list sorted oldest first.

    Accepts str or bytes names; anything that is not a snapshot branch
    is skipped.
    """
    catalog = defaultdict(list)
    for name in branch_names:
        if isinstance(name, bytes):
            name = name.decode("utf-8", errors="replace")
        try:
            sid = SnapshotId.parse(name)
        except ValueError:
            logger.debug("Ignoring non-snapshot branch %s", name)
            continue
        catalog[sid.world_id].append(sid)
    for sids in catalog.values():
        sids.sort()
    return dict(catalog)
