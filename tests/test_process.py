"""Tests for the external command wrapper."""

import sys

import pytest

from worldsnap import process
from worldsnap.process import ProcessError, is_native_git_installed, run_external_command


class TestRunExternalCommand:
    def test_success_captures_output(self):
        result = run_external_command([sys.executable, "-c", "print('hi')"])
        assert result.stdout.strip() == b"hi"

    def test_nonzero_exit_raises_with_stderr(self):
        cmd = [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]
        with pytest.raises(ProcessError) as excinfo:
            run_external_command(cmd)
        assert excinfo.value.returncode == 3
        assert excinfo.value.stderr == "boom"

    def test_discarded_output(self):
        result = run_external_command([sys.executable, "-c", "print('hi')"], capture=False)
        assert result.stdout is None

    def test_env_overrides_layer_on_environment(self):
        cmd = [sys.executable, "-c", "import os; print(os.environ['WORLDSNAP_TEST'])"]
        result = run_external_command(cmd, env={"WORLDSNAP_TEST": "yes"})
        assert result.stdout.strip() == b"yes"

    def test_missing_binary_raises(self):
        with pytest.raises(ProcessError):
            run_external_command(["definitely-not-a-real-binary-worldsnap"])


class TestNativeGitDetection:
    def test_missing_git(self, monkeypatch):
        monkeypatch.setattr(process.shutil, "which", lambda name: None)
        assert is_native_git_installed() is False

    def test_lfs_missing(self, monkeypatch):
        monkeypatch.setattr(process.shutil, "which", lambda name: "/usr/bin/git")

        def fake_run(cmd, cwd=None, env=None, capture=True):
            if cmd[:2] == ["git", "lfs"]:
                raise ProcessError(cmd, 1)

        monkeypatch.setattr(process, "run_external_command", fake_run)
        assert is_native_git_installed() is False
