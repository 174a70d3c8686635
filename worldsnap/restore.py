"""
Restore

Materializes a snapshot into a fresh directory next to (never on top
of) the live world. If the snapshot is not at the source, nothing is
left behind: the half-made target directory is removed and
SnapshotNotFoundError is raised.
"""

import io
import logging
import shutil
from pathlib import Path

from dulwich import porcelain

from .catalog import SnapshotId
from .process import run_external_command

logger = logging.getLogger(__name__)


class SnapshotNotFoundError(ValueError):
    """Raised when the requested snapshot does not exist at the source."""

    def __init__(self, uri: str, sid: SnapshotId):
        super().__init__(f"Snapshot {sid.branch_name} not found at {uri}")
        self.uri = uri
        self.sid = sid


def restore_target(restores_dir: Path, world_name: str, sid: SnapshotId) -> Path:
    """Pick <world>-<timestamp>, adding -2, -3, ... until the name is free."""
    base = f"{world_name}-{sid.date_str}"
    target = Path(restores_dir) / base
    n = 2
    while target.exists():
        target = Path(restores_dir) / f"{base}-{n}"
        n += 1
    return target


def _restore_managed(uri: str, target: Path, sid: SnapshotId) -> None:
    git = porcelain.clone(uri, str(target), checkout=False, errstream=io.BytesIO())
    try:
        remote_ref = b"refs/remotes/origin/" + sid.branch_name.encode("utf-8")
        try:
            commit_id = git.refs[remote_ref]
        except KeyError:
            raise SnapshotNotFoundError(uri, sid) from None
        git.refs[sid.ref] = commit_id
        git.refs.set_symbolic_ref(b"HEAD", sid.ref)
        porcelain.reset(git, "hard", commit_id)
    finally:
        git.close()


def _restore_native(uri: str, target: Path, sid: SnapshotId) -> None:
    result = run_external_command(["git", "ls-remote", "--heads", uri, sid.branch_name])
    if not result.stdout.strip():
        raise SnapshotNotFoundError(uri, sid)
    run_external_command(
        ["git", "clone", "--branch", sid.branch_name, "--single-branch", uri, str(target)]
    )


def restore_snapshot(
    uri: str,
    restores_dir: Path,
    world_name: str,
    sid: SnapshotId,
    native: bool = False,
) -> Path:
    """Clone the snapshot branch from uri into a new directory and return its path."""
    uri = str(uri)
    restores_dir = Path(restores_dir)
    restores_dir.mkdir(parents=True, exist_ok=True)
    target = restore_target(restores_dir, world_name, sid)
    logger.info("Restoring %s from %s into %s", sid, uri, target)
    try:
        if native:
            _restore_native(uri, target, sid)
        else:
            _restore_managed(uri, target, sid)
    except Exception:
        shutil.rmtree(target, ignore_errors=True)
        raise
    return target
