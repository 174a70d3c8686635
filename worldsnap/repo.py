"""
Repository

The high-level API the host application calls to back up a world.
A Repository wraps the world directory's git repository and runs each
lifecycle operation as an ordered sequence:

    commit_and_push:  gate -> preflight -> snapshot -> publish
    commit_snapshot:  gate -> preflight -> snapshot
    gc:               gate -> preflight -> reclaim
    local_prune / remote_prune:  catalog -> retention policy -> delete
    restore_snapshot: clone into a fresh directory (no preflight)

    with Repository.open(world_dir) as repo:
        sid = repo.commit_and_push()

Nothing about a previous operation is trusted by the next one: each
mutating call re-runs preflight. The host is expected to serialize
calls into one Repository instance.
"""

import io
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from dulwich import porcelain
from dulwich.errors import NotGitRepository
from dulwich.refs import SYMREF
from dulwich.repo import Repo

from .backends import is_execution_mode_viable, select_backend
from .catalog import HEADS_PREFIX, SnapshotId, build_catalog
from .config import NATIVE_MODE_ENABLED, RepoConfig, load_config, set_config_value
from .identity import read_world_id, world_id_path
from .messages import (
    BACKUP_COMPLETE,
    MessageHandler,
    UserMessage,
    log_message,
    native_git_missing,
)
from .preflight import run_preflight
from .publication import publish
from .reclaim import ReclaimResult
from .restore import restore_snapshot
from .retention import parse_policy, prune
from .snapshot import write_snapshot

logger = logging.getLogger(__name__)


class NotARepository(ValueError):  # noqa: N818
    """Raised when a directory has no git repository to back up into."""

    def __init__(self, path):
        super().__init__(
            f"Not a git repository: {path}\n"
            f"  Use Repository.init() to enable backups for this world."
        )


class RemoteNotConfiguredError(ValueError):
    """Raised when the configured remote name has no URL."""

    def __init__(self, remote_name: str):
        super().__init__(
            f"Remote '{remote_name}' is not configured.\n"
            f"  Add it with Repository.add_remote() or set worldsnap.remote-name."
        )
        self.remote_name = remote_name


class Repository:
    """
    A backed-up world.

    Configuration is read from git config on first use and cached for
    the lifetime of the instance; call invalidate_config() after
    changing it behind the instance's back.
    """

    def __init__(
        self,
        root: Path,
        on_message: MessageHandler | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.root = Path(root).resolve()
        try:
            self.git = Repo(str(self.root))
        except NotGitRepository:
            raise NotARepository(self.root) from None
        self.git_dir = Path(self.git.controldir())
        self._config = None
        self._on_message = on_message or log_message
        self._clock = clock

    @classmethod
    def init(cls, path: Path, **kwargs) -> "Repository":
        """Create a git repository in an existing or new world directory."""
        root = Path(path).resolve()
        if (root / ".git").exists():
            raise ValueError(f"Repository already exists at {root}")
        root.mkdir(parents=True, exist_ok=True)
        Repo.init(str(root)).close()
        logger.info("Initialized backup repository at %s", root)
        return cls(root, **kwargs)

    @classmethod
    def open(cls, path: Path, **kwargs) -> "Repository":
        return cls(Path(path), **kwargs)

    # ── Configuration ─────────────────────────────────────────────

    @property
    def config(self) -> RepoConfig:
        if self._config is None:
            self._config = load_config(self.git.get_config())
        return self._config

    def invalidate_config(self) -> None:
        self._config = None

    def set_config(self, key: str, value) -> None:
        set_config_value(self.git.get_config(), key, value)
        self.invalidate_config()

    def set_native_mode(self, enabled: bool) -> None:
        """Switch execution mode and re-normalize the repository for it."""
        self.set_config(NATIVE_MODE_ENABLED, enabled)
        config = self.config
        if not is_execution_mode_viable(config):
            self._emit(native_git_missing("switch to native mode"))
            return
        run_preflight(self, config, select_backend(config.execution_mode))

    def add_remote(self, name: str, url: str) -> None:
        git_config = self.git.get_config()
        section = (b"remote", name.encode("utf-8"))
        git_config.set(section, b"url", url.encode("utf-8"))
        git_config.set(section, b"fetch", f"+refs/heads/*:refs/remotes/{name}/*".encode("utf-8"))
        git_config.write_to_path()

    def remote_url(self, remote_name: str) -> str:
        try:
            url = self.git.get_config().get((b"remote", remote_name.encode("utf-8")), b"url")
        except KeyError:
            raise RemoteNotConfiguredError(remote_name) from None
        return url.decode("utf-8")

    # ── Lifecycle Operations ──────────────────────────────────────

    def commit_and_push(self) -> SnapshotId | None:
        """Snapshot the world and publish it.

        Returns None without touching anything if the execution mode
        cannot run on this host. A failed push leaves the local
        snapshot in place; the next push can retry it.
        """
        config = self.config
        backend = self._prepare(config, "backup")
        if backend is None:
            return None
        sid = write_snapshot(self, backend, now=self._now())
        publish(self, backend, config.remote_name, sid)
        self._emit(BACKUP_COMPLETE)
        return sid

    def commit_snapshot(self) -> SnapshotId | None:
        """Snapshot the world locally, without publishing."""
        config = self.config
        backend = self._prepare(config, "backup")
        if backend is None:
            return None
        sid = write_snapshot(self, backend, now=self._now())
        self._emit(BACKUP_COMPLETE)
        return sid

    def local_prune(self) -> list[SnapshotId]:
        """Delete local snapshots of this world that the local policy rejects."""
        policy = parse_policy(self.config.local_retention_policy)
        world_id = self._world_id_or_none()
        if world_id is None:
            return []
        snapshots = self.list_snapshots().get(world_id, [])
        protected = [sid for sid in snapshots if sid.ref == self._head_ref()]
        return prune(
            snapshots,
            policy,
            lambda sids: self.delete_local_branches([sid.branch_name for sid in sids]),
            protected=protected,
            now=self._now(),
        )

    def remote_prune(self) -> list[SnapshotId]:
        """Delete remote snapshots of this world that the remote policy rejects."""
        config = self.config
        policy = parse_policy(config.remote_retention_policy)
        world_id = self._world_id_or_none()
        if world_id is None:
            return []
        snapshots = self.list_remote_snapshots().get(world_id, [])

        def delete(sids):
            for sid in sids:
                self.delete_remote_branch(sid.branch_name)
                logger.info("Deleted remote snapshot %s from %s", sid, config.remote_name)

        return prune(snapshots, policy, delete, now=self._now())

    def gc(self) -> ReclaimResult | None:
        """Reclaim space held by deleted snapshots.

        Refused on the same terms as commit: a native gc without the
        native toolchain cannot run, and a managed gc would repack a
        store that native git is configured to own.
        """
        config = self.config
        backend = self._prepare(config, "reclaim space")
        if backend is None:
            return None
        logger.info("Reclaiming space in %s (%s)", self.root, backend.mode.value)
        result = backend.reclaim(self)
        logger.info("Reclaimed %d bytes", result.reclaimed_bytes)
        return result

    def restore_snapshot(
        self, uri: str, restores_dir: Path, world_name: str, sid: SnapshotId
    ) -> Path:
        """Materialize a snapshot from uri into a new directory under restores_dir."""
        return restore_snapshot(uri, restores_dir, world_name, sid, native=self.config.native_mode)

    # ── Query Operations ──────────────────────────────────────────

    def world_id(self) -> str:
        return read_world_id(self.root)

    def list_snapshots(self) -> dict[str, list[SnapshotId]]:
        """Local snapshots grouped by world id, oldest first."""
        return build_catalog(self.git.refs.keys(base=b"refs/heads"))

    def list_remote_snapshots(self) -> dict[str, list[SnapshotId]]:
        """Snapshots advertised by the configured remote, grouped by world id."""
        url = self.remote_url(self.config.remote_name)
        result = porcelain.ls_remote(url)
        refs = getattr(result, "refs", result)
        heads = HEADS_PREFIX.encode()
        return build_catalog(name[len(heads):] for name in refs if name.startswith(heads))

    # ── Branch Maintenance ────────────────────────────────────────

    def delete_local_branches(self, branch_names: list[str]) -> None:
        for name in branch_names:
            ref = (HEADS_PREFIX + name).encode("utf-8")
            if ref == self._head_ref():
                raise ValueError(f"Refusing to delete the checked-out branch {name}")
            logger.debug("Deleting local branch %s", name)
            self.git.refs.remove_if_equals(ref, None)

    def delete_remote_branch(self, branch_name: str) -> None:
        remote_name = self.config.remote_name
        self.remote_url(remote_name)
        ref = (HEADS_PREFIX + branch_name).encode("utf-8")
        logger.debug("Deleting remote branch %s on %s", branch_name, remote_name)
        porcelain.push(self.git, remote_name, [b":" + ref], errstream=io.BytesIO())

    # ── Internals ─────────────────────────────────────────────────

    def _prepare(self, config: RepoConfig, action: str):
        """Gate on execution mode, then preflight. Returns the backend or None."""
        if not is_execution_mode_viable(config):
            self._emit(native_git_missing(action))
            return None
        backend = select_backend(config.execution_mode)
        run_preflight(self, config, backend)
        return backend

    def _emit(self, message: UserMessage) -> None:
        self._on_message(message)

    def _now(self) -> datetime | None:
        return self._clock() if self._clock else None

    def _head_ref(self) -> bytes | None:
        raw = self.git.refs.read_ref(b"HEAD")
        if raw and raw.startswith(SYMREF):
            return raw[len(SYMREF):].strip()
        return None

    def _world_id_or_none(self) -> str | None:
        if not world_id_path(self.root).exists():
            return None
        return read_world_id(self.root)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def close(self):
        self.git.close()
