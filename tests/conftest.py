"""
Shared pytest configuration and fixtures.

Most tests run against the managed (dulwich) backend with a bare
repository on disk standing in for the remote. Tests that need the
real git and git-lfs binaries live in test_native.py.
"""

from datetime import datetime, timedelta

import pytest
from dulwich.repo import Repo


class FakeClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start=datetime(2024, 5, 1, 12, 0, 0), step=timedelta(minutes=1)):
        self.current = start
        self.step = step

    def __call__(self):
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture
def world(tmp_path):
    """A small world save directory."""
    world_dir = tmp_path / "world"
    world_dir.mkdir()
    (world_dir / "level.dat").write_bytes(b"\x0a\x00\x00level")
    (world_dir / "region").mkdir()
    (world_dir / "region" / "r.0.0.mca").write_bytes(b"region-data" * 200)
    (world_dir / "session.lock").write_text("locked")
    return world_dir


@pytest.fixture
def remote_dir(tmp_path):
    """Empty bare repository used as the push target."""
    path = tmp_path / "remote.git"
    Repo.init_bare(str(path), mkdir=True).close()
    return path


@pytest.fixture
def messages():
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repo(world, remote_dir, messages, clock):
    """Managed-mode repository for the world with an 'origin' remote."""
    from worldsnap.repo import Repository

    r = Repository.init(world, on_message=messages.append, clock=clock)
    r.add_remote("origin", str(remote_dir))
    yield r
    r.close()
