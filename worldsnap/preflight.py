"""
Preflight

Normalizes repository state before any mutating operation (commit,
push, gc). Every step is an idempotent overwrite, so a failure part
way through leaves nothing that a retry will not fix; errors simply
propagate and abort the remaining steps.
"""

import logging

from .config import ExecutionMode, RepoConfig
from .identity import ensure_world_id
from .templates import (
    ATTRIBUTES_TEMPLATE_MANAGED,
    ATTRIBUTES_TEMPLATE_NATIVE,
    IGNORE_TEMPLATE,
    write_template,
)

logger = logging.getLogger(__name__)

IGNORE_FILE = ".gitignore"
ATTRIBUTES_FILE = ".gitattributes"


def run_preflight(repo, config: RepoConfig, backend) -> None:
    """Should be called prior to any heavy lifting with git."""
    logger.debug("Running preflight for %s", repo.root)
    ensure_world_id(repo.root)

    if config.update_ignore_rules:
        write_template(IGNORE_TEMPLATE, repo.root / IGNORE_FILE)

    if config.update_attribute_rules:
        if config.execution_mode is ExecutionMode.NATIVE:
            template = ATTRIBUTES_TEMPLATE_NATIVE
        else:
            template = ATTRIBUTES_TEMPLATE_MANAGED
        write_template(template, repo.root / ATTRIBUTES_FILE)

    if config.auto_install_large_file_support:
        backend.reconcile_large_file_support(repo)
