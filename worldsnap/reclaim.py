"""
Space Reclamation

Garbage collection for a world's git object store, used by the managed
backend. Pruning deletes snapshot branches but leaves their objects
behind; dulwich's gc drops everything no ref can reach and repacks the
rest. The native backend delegates the same job to ``git gc``.

Reclamation is never automatic. It must be explicitly invoked and
must not run while a snapshot is being written.
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

from dulwich.gc import garbage_collect

logger = logging.getLogger(__name__)


@dataclass
class ReclaimResult:
    mode: str
    bytes_before: int
    bytes_after: int
    elapsed_ms: float
    deleted_objects: int | None = None
    dry_run: bool = False

    @property
    def reclaimed_bytes(self) -> int:
        return max(0, self.bytes_before - self.bytes_after)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "bytes_before": self.bytes_before,
            "bytes_after": self.bytes_after,
            "reclaimed_bytes": self.reclaimed_bytes,
            "deleted_objects": self.deleted_objects,
            "dry_run": self.dry_run,
            "elapsed_ms": self.elapsed_ms,
        }


def directory_size(path: Path) -> int:
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue
    return total


def collect_garbage(git, dry_run: bool = False) -> ReclaimResult:
    """
    Prune unreachable objects from a dulwich repository and repack.

    No grace period: anything unreachable when this runs is removed.
    With dry_run the unreachable objects are counted but left in place.
    """
    start = time.monotonic()
    objects_dir = Path(git.object_store.path)
    bytes_before = directory_size(objects_dir)

    stats = garbage_collect(git, prune=True, grace_period=0, dry_run=dry_run)
    deleted = len(stats.pruned_objects)

    bytes_after = bytes_before if dry_run else directory_size(objects_dir)
    logger.info(
        "gc %s %d unreachable objects, reclaimed %d bytes",
        "found" if dry_run else "removed",
        deleted,
        max(0, bytes_before - bytes_after),
    )
    return ReclaimResult(
        mode="managed",
        bytes_before=bytes_before,
        bytes_after=bytes_after,
        elapsed_ms=(time.monotonic() - start) * 1000,
        deleted_objects=deleted,
        dry_run=dry_run,
    )
