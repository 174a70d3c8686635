"""
Configuration

worldsnap settings live in the [worldsnap] section of the world's own
git config, so they travel with the repository. They are read through
dulwich regardless of execution mode and parsed into an immutable
RepoConfig that the orchestration layer passes to every component.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

SECTION = (b"worldsnap",)

UPDATE_IGNORE_RULES_ENABLED = "update-ignore-rules-enabled"
UPDATE_ATTRIBUTE_RULES_ENABLED = "update-attribute-rules-enabled"
NATIVE_MODE_ENABLED = "native-mode-enabled"
AUTO_INSTALL_LARGE_FILE_SUPPORT = "auto-install-large-file-support"
REMOTE_NAME = "remote-name"
LOCAL_RETENTION_POLICY = "local-retention-policy"
REMOTE_RETENTION_POLICY = "remote-retention-policy"


class ExecutionMode(Enum):
    MANAGED = "managed"
    NATIVE = "native"


@dataclass(frozen=True)
class RepoConfig:
    """Settings consumed by the snapshot lifecycle."""

    update_ignore_rules: bool = field(default=True, metadata={"key": UPDATE_IGNORE_RULES_ENABLED})
    update_attribute_rules: bool = field(
        default=True, metadata={"key": UPDATE_ATTRIBUTE_RULES_ENABLED}
    )
    native_mode: bool = field(default=False, metadata={"key": NATIVE_MODE_ENABLED})
    auto_install_large_file_support: bool = field(
        default=True, metadata={"key": AUTO_INSTALL_LARGE_FILE_SUPPORT}
    )
    remote_name: str = field(default="origin", metadata={"key": REMOTE_NAME})
    local_retention_policy: str = field(default="all", metadata={"key": LOCAL_RETENTION_POLICY})
    remote_retention_policy: str = field(default="all", metadata={"key": REMOTE_RETENTION_POLICY})

    @property
    def execution_mode(self) -> ExecutionMode:
        return ExecutionMode.NATIVE if self.native_mode else ExecutionMode.MANAGED

    def to_dict(self) -> dict:
        return {f.metadata["key"]: getattr(self, f.name) for f in dataclasses.fields(self)}


def _key_field(key: str) -> dataclasses.Field:
    for f in dataclasses.fields(RepoConfig):
        if f.metadata["key"] == key:
            return f
    raise ValueError(f"Unknown config key: {key!r}")


def load_config(git_config) -> RepoConfig:
    """Build a RepoConfig from a dulwich Config, falling back to defaults."""
    values = {}
    for f in dataclasses.fields(RepoConfig):
        name = f.metadata["key"].encode()
        if f.type is bool:
            values[f.name] = git_config.get_boolean(SECTION, name, f.default)
        else:
            try:
                values[f.name] = git_config.get(SECTION, name).decode("utf-8").strip()
            except KeyError:
                values[f.name] = f.default
    config = RepoConfig(**values)
    logger.debug("Loaded config %s", config.to_dict())
    return config


def set_config_value(git_config, key: str, value) -> None:
    """Persist one [worldsnap] setting to the repository's config file."""
    _key_field(key)
    if isinstance(value, bool):
        raw = b"true" if value else b"false"
    else:
        raw = str(value).encode("utf-8")
    git_config.set(SECTION, key.encode(), raw)
    git_config.write_to_path()
