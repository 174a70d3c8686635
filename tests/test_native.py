"""
End-to-end tests against the real git and git-lfs binaries.
"""

import subprocess

import pytest

from worldsnap.backends import LFS_HOOK_NAMES, lfs_hooks_installed
from worldsnap.config import LOCAL_RETENTION_POLICY
from worldsnap.messages import BACKUP_COMPLETE
from worldsnap.templates import ATTRIBUTES_TEMPLATE_NATIVE, render_template


def _has_native_git():
    """Check if git and git-lfs are available on the system."""
    try:
        subprocess.run(["git", "--version"], capture_output=True, check=True)
        subprocess.run(["git", "lfs", "version"], capture_output=True, check=True)
        return True
    except (FileNotFoundError, subprocess.CalledProcessError):
        return False


pytestmark = pytest.mark.skipif(not _has_native_git(), reason="git and git-lfs not available")


def _git(cwd, *args):
    return subprocess.run(
        ["git", "-C", str(cwd), *args], capture_output=True, text=True, check=True
    ).stdout


@pytest.fixture
def native_repo(repo):
    # No large files: keeps git-lfs from needing a transfer endpoint on push.
    (repo.root / "region" / "r.0.0.mca").unlink()
    repo.set_native_mode(True)
    return repo


class TestNativeLifecycle:
    def test_set_native_mode_installs_hooks(self, native_repo):
        assert lfs_hooks_installed(native_repo.git_dir)
        for hook in LFS_HOOK_NAMES:
            assert (native_repo.git_dir / "hooks" / hook).exists()
        assert (native_repo.root / ".gitattributes").read_text() == render_template(
            ATTRIBUTES_TEMPLATE_NATIVE
        )

    def test_commit_and_push(self, native_repo, remote_dir, messages):
        sid = native_repo.commit_and_push()

        assert messages[-1] == BACKUP_COMPLETE
        assert native_repo.list_snapshots() == {native_repo.world_id(): [sid]}
        assert native_repo.list_remote_snapshots() == {native_repo.world_id(): [sid]}
        assert _git(native_repo.root, "symbolic-ref", "HEAD").strip() == sid.ref.decode()
        files = _git(remote_dir, "ls-tree", "-r", "--name-only", sid.branch_name).split()
        assert "level.dat" in files
        assert "session.lock" not in files

    def test_native_snapshots_are_parentless(self, native_repo):
        native_repo.commit_snapshot()
        second = native_repo.commit_snapshot()
        parents = _git(native_repo.root, "rev-list", "--parents", "-n", "1", second.branch_name)
        assert len(parents.split()) == 1

    def test_gc(self, native_repo):
        native_repo.commit_snapshot()
        latest = native_repo.commit_snapshot()
        native_repo.set_config(LOCAL_RETENTION_POLICY, "fixed count=1")
        native_repo.local_prune()

        result = native_repo.gc()

        assert result.mode == "native"
        assert native_repo.list_snapshots() == {native_repo.world_id(): [latest]}
        _git(native_repo.root, "cat-file", "-e", latest.branch_name + "^{tree}")

    def test_restore(self, native_repo, tmp_path):
        sid = native_repo.commit_and_push()
        uri = native_repo.remote_url("origin")

        target = native_repo.restore_snapshot(uri, tmp_path / "restores", "MyWorld", sid)

        assert (target / "level.dat").read_bytes() == b"\x0a\x00\x00level"
