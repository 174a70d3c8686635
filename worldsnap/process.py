"""
External Commands

Blocking wrappers around subprocess for the native git toolchain.
Commands run synchronously with no built-in timeout; a non-zero exit
is surfaced as ProcessError.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessError(RuntimeError):
    """Raised when an external command exits non-zero or cannot be started."""

    def __init__(self, cmd: list, returncode: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr}" if stderr else ""
        super().__init__(f"{' '.join(self.cmd)} failed with exit code {returncode}{detail}")


def run_external_command(
    cmd: list,
    cwd: Path | None = None,
    env: dict | None = None,
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """Run a command and wait for it.

    ``env`` entries are layered over the current environment; ``None``
    means no overrides at all. With ``capture=False`` both output streams
    are discarded.
    """
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)
    logger.debug("Executing %s", cmd)
    stream = subprocess.PIPE if capture else subprocess.DEVNULL
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
            stdout=stream,
            stderr=stream,
        )
    except OSError as e:
        raise ProcessError(cmd, -1, str(e)) from e
    if result.returncode != 0:
        stderr = ""
        if capture and result.stderr:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ProcessError(cmd, result.returncode, stderr)
    return result


def _command_succeeds(cmd: list) -> bool:
    try:
        run_external_command(cmd)
        return True
    except ProcessError:
        return False


def is_native_git_installed() -> bool:
    """True when both git and git-lfs can be run on this host."""
    if shutil.which("git") is None:
        return False
    return _command_succeeds(["git", "--version"]) and _command_succeeds(["git", "lfs", "version"])
