"""
World Identity

Every backed-up world carries a stable id in worldsnap/world.uuid.
The id names the world's snapshot branches, so it is written once
and never changed afterwards.
"""

import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

WORLD_UUID_PATH = Path("worldsnap") / "world.uuid"


def world_id_path(worktree: Path) -> Path:
    return Path(worktree) / WORLD_UUID_PATH


def read_world_id(worktree: Path) -> str:
    """Read an existing world id. Raises FileNotFoundError if there is none."""
    return world_id_path(worktree).read_text().strip()


def ensure_world_id(worktree: Path) -> str:
    """Return the world id, generating and persisting one if absent."""
    path = world_id_path(worktree)
    if path.exists():
        return path.read_text().strip()
    world_id = str(uuid.uuid4())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(world_id + "\n")
    logger.info("Generated new world id %s for %s", world_id, worktree)
    return world_id
