"""
Execution Backends

The same snapshot lifecycle runs on one of two backends:

- ManagedBackend does all git work in-process with dulwich.
- NativeBackend shells out to the git and git-lfs command line tools.

A backend is chosen once per operation from the repository's
ExecutionMode and handles large-file-support reconciliation,
snapshot commits, publication and space reclamation for that
operation.
"""

import io
import logging
import os
import stat
import time
from abc import ABC, abstractmethod
from pathlib import Path

from dulwich import porcelain
from dulwich.ignore import IgnoreFilterManager
from dulwich.index import cleanup_mode, commit_tree
from dulwich.objects import Blob, Commit
from dulwich.refs import SYMREF

from .config import ExecutionMode, RepoConfig
from .process import ProcessError, is_native_git_installed, run_external_command
from .reclaim import ReclaimResult, collect_garbage, directory_size
from .snapshot import SnapshotExistsError

logger = logging.getLogger(__name__)

GIT = "git"
LFS_HOOK_NAMES = ("pre-push", "post-checkout", "post-commit", "post-merge")
LFS_CONFIG_SECTIONS = ((b"lfs",), (b"filter", b"lfs"))

AUTHOR_NAME = "worldsnap"
AUTHOR_EMAIL = "worldsnap@localhost"
AUTHOR = f"{AUTHOR_NAME} <{AUTHOR_EMAIL}>".encode()


def expected_hook_line(hook_name: str) -> str:
    return f'{GIT} lfs {hook_name} "$@"'


def lfs_hooks_installed(git_dir: Path) -> bool:
    """Check that every git-lfs hook is present and invokes git-lfs.

    Each hook file is scanned line by line for the exact invocation
    line, compared case-insensitively. A missing or unreadable file
    counts as not installed.
    """
    hooks_dir = Path(git_dir) / "hooks"
    for hook_name in LFS_HOOK_NAMES:
        expected = expected_hook_line(hook_name).lower()
        try:
            with open(hooks_dir / hook_name, encoding="utf-8", errors="replace") as f:
                if not any(line.rstrip("\r\n").lower() == expected for line in f):
                    logger.debug("Hook %s does not invoke git-lfs", hook_name)
                    return False
        except OSError:
            logger.debug("Hook %s missing or unreadable", hook_name)
            return False
    return True


def is_execution_mode_viable(config: RepoConfig) -> bool:
    """False when native mode is configured but the toolchain is absent."""
    if config.execution_mode is ExecutionMode.NATIVE:
        return is_native_git_installed()
    return True


class ExecutionBackend(ABC):
    """Capabilities that differ between managed and native execution.

    Snapshot commits have no parents, so deleting a snapshot branch
    makes everything only it referenced unreachable. Unchanged files
    are still shared between snapshots through content addressing.
    """

    mode: ExecutionMode

    @abstractmethod
    def reconcile_large_file_support(self, repo) -> None:
        """Bring the repository's large-file handling in line with this mode."""

    @abstractmethod
    def commit_snapshot(self, repo, sid, message: str) -> None:
        """Commit the whole tree as a parentless commit on a new branch and point HEAD at it."""

    @abstractmethod
    def push_snapshot(self, repo, remote_name: str, sid) -> None:
        """Push a snapshot branch. Pushing the same snapshot again is a no-op."""

    @abstractmethod
    def reclaim(self, repo) -> ReclaimResult:
        """Remove objects no longer reachable from any snapshot."""


class ManagedBackend(ExecutionBackend):
    mode = ExecutionMode.MANAGED

    def reconcile_large_file_support(self, repo) -> None:
        # dulwich's built-in lfs handling does not interoperate with
        # native git-lfs, so keep its config sections out of the repo.
        try:
            git_config = repo.git.get_config()
            removed = False
            for section in LFS_CONFIG_SECTIONS:
                if section in git_config:
                    del git_config[section]
                    removed = True
            if removed:
                git_config.write_to_path()
                logger.info("Removed git-lfs config sections from %s", repo.git_dir)
        except Exception:
            logger.debug("Could not remove git-lfs config sections", exc_info=True)

    def commit_snapshot(self, repo, sid, message: str) -> None:
        git = repo.git
        blobs = _collect_worktree_blobs(git, repo.root)
        commit = Commit()
        commit.tree = commit_tree(git.object_store, blobs)
        commit.parents = []
        commit.author = commit.committer = AUTHOR
        commit.author_time = commit.commit_time = int(time.time())
        commit.author_timezone = commit.commit_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = message.encode("utf-8")
        git.object_store.add_object(commit)

        if not git.refs.add_if_new(sid.ref, commit.id):
            raise SnapshotExistsError(sid)
        git.refs.set_symbolic_ref(b"HEAD", sid.ref)
        logger.debug("Committed %s as %s", sid, commit.id.decode("ascii"))

    def push_snapshot(self, repo, remote_name: str, sid) -> None:
        refspec = sid.ref + b":" + sid.ref
        porcelain.push(repo.git, remote_name, [refspec], errstream=io.BytesIO())

    def reclaim(self, repo) -> ReclaimResult:
        return collect_garbage(repo.git)


def _collect_worktree_blobs(git, worktree: Path) -> list:
    """Store every non-ignored file as a blob; return (path, sha, mode) entries.

    Symlinks are stored as links, including links to directories, which
    are never followed.
    """
    ignore = IgnoreFilterManager.from_repo(git)
    entries = []
    for dirpath, dirnames, filenames in os.walk(worktree):
        rel_dir = Path(dirpath).relative_to(worktree).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        kept = []
        for name in sorted(dirnames):
            if name == ".git":
                continue
            if os.path.islink(os.path.join(dirpath, name)):
                filenames.append(name)
                continue
            if ignore.is_ignored(prefix + name + "/"):
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            rel_path = prefix + name
            if ignore.is_ignored(rel_path):
                continue
            full_path = os.path.join(dirpath, name)
            st = os.lstat(full_path)
            if stat.S_ISLNK(st.st_mode):
                data = os.fsencode(os.readlink(full_path))
            elif stat.S_ISREG(st.st_mode):
                with open(full_path, "rb") as f:
                    data = f.read()
            else:
                continue
            blob = Blob.from_string(data)
            git.object_store.add_object(blob)
            entries.append((rel_path.encode("utf-8"), blob.id, cleanup_mode(st.st_mode)))
    return entries


class NativeBackend(ExecutionBackend):
    mode = ExecutionMode.NATIVE

    def _git(self, repo, args: list, env: dict | None = None):
        return run_external_command([GIT, "-C", str(repo.root)] + args, env=env)

    def reconcile_large_file_support(self, repo) -> None:
        if lfs_hooks_installed(repo.git_dir):
            return
        logger.info("Installing git-lfs hooks in %s", repo.root)
        run_external_command([GIT, "-C", str(repo.root), "lfs", "install", "--local"], capture=False)

    def commit_snapshot(self, repo, sid, message: str) -> None:
        env = {
            "GIT_AUTHOR_NAME": AUTHOR_NAME,
            "GIT_AUTHOR_EMAIL": AUTHOR_EMAIL,
            "GIT_COMMITTER_NAME": AUTHOR_NAME,
            "GIT_COMMITTER_EMAIL": AUTHOR_EMAIL,
        }
        previous_head = repo.git.refs.read_ref(b"HEAD")
        self._git(repo, ["symbolic-ref", "HEAD", sid.ref.decode("utf-8")])
        try:
            self._git(repo, ["add", "-A"])
            self._git(repo, ["commit", "--allow-empty", "-m", message], env=env)
        except ProcessError:
            self._restore_head(repo, previous_head)
            raise

    def _restore_head(self, repo, previous_head: bytes | None) -> None:
        """Point HEAD back where it was before a failed snapshot commit."""
        if previous_head is None:
            return
        logger.warning("Snapshot commit failed, restoring HEAD in %s", repo.root)
        if previous_head.startswith(SYMREF):
            target = previous_head[len(SYMREF):].strip().decode("utf-8")
            self._git(repo, ["symbolic-ref", "HEAD", target])
        else:
            self._git(repo, ["update-ref", "--no-deref", "HEAD", previous_head.decode("ascii")])

    def push_snapshot(self, repo, remote_name: str, sid) -> None:
        self._git(repo, ["push", "--set-upstream", remote_name, sid.branch_name])

    def reclaim(self, repo) -> ReclaimResult:
        start = time.monotonic()
        objects_dir = repo.git_dir / "objects"
        bytes_before = directory_size(objects_dir)
        self._git(repo, ["reflog", "expire", "--expire=now", "--all"])
        self._git(repo, ["gc", "--prune=now"])
        bytes_after = directory_size(objects_dir)
        return ReclaimResult(
            mode="native",
            bytes_before=bytes_before,
            bytes_after=bytes_after,
            elapsed_ms=(time.monotonic() - start) * 1000,
        )


def select_backend(mode: ExecutionMode) -> ExecutionBackend:
    if mode is ExecutionMode.NATIVE:
        return NativeBackend()
    return ManagedBackend()
