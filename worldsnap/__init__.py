"""
worldsnap — Incremental Game World Backups on Git

Each backup of a world directory is a snapshot branch in the world's
own git repository. Snapshots can be pushed to a remote, pruned by a
retention policy, garbage collected, and restored into a fresh
directory. Git work runs either in-process through dulwich or through
the native git and git-lfs command line tools.
"""

__version__ = "0.1.0"

__all__ = [
    # Core
    "Repository",
    "NotARepository",
    "RemoteNotConfiguredError",
    # Snapshots
    "SnapshotId",
    "SnapshotExistsError",
    "SnapshotNotFoundError",
    # Configuration
    "RepoConfig",
    "ExecutionMode",
    # Retention
    "RetentionPolicy",
    "RetentionPolicyError",
    "parse_policy",
    # Reclamation
    "ReclaimResult",
    # Messages
    "UserMessage",
]


# Lazy imports: only resolve when accessed
def __getattr__(name):
    if name in ("Repository", "NotARepository", "RemoteNotConfiguredError"):
        from . import repo

        return getattr(repo, name)
    if name == "SnapshotId":
        from .catalog import SnapshotId

        return SnapshotId
    if name == "SnapshotExistsError":
        from .snapshot import SnapshotExistsError

        return SnapshotExistsError
    if name == "SnapshotNotFoundError":
        from .restore import SnapshotNotFoundError

        return SnapshotNotFoundError
    if name in ("RepoConfig", "ExecutionMode"):
        from . import config

        return getattr(config, name)
    if name in ("RetentionPolicy", "RetentionPolicyError", "parse_policy"):
        from . import retention

        return getattr(retention, name)
    if name == "ReclaimResult":
        from .reclaim import ReclaimResult

        return ReclaimResult
    if name == "UserMessage":
        from .messages import UserMessage

        return UserMessage
    raise AttributeError(f"module 'worldsnap' has no attribute {name!r}")
