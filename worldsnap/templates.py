"""
Repository Templates

Fixed ignore and attribute rule files copied verbatim into the world
directory during preflight. Two attribute templates exist because the
native toolchain routes region files through the git-lfs filter while
the managed library stores them as plain binary blobs.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

IGNORE_TEMPLATE = "ignore-template"
ATTRIBUTES_TEMPLATE_NATIVE = "attributes-template-native"
ATTRIBUTES_TEMPLATE_MANAGED = "attributes-template-managed"

_GITIGNORE = """\
# Managed by worldsnap; rewritten before every backup.
# Set worldsnap.update-ignore-rules-enabled=false to maintain it yourself.

session.lock
*.tmp
*.bak
*_old
logs/
crash-reports/
"""

_GITATTRIBUTES_NATIVE = """\
# Managed by worldsnap; rewritten before every backup.
# Large binary world files are stored out of band with git-lfs.

*.mca filter=lfs diff=lfs merge=lfs -text
*.mcr filter=lfs diff=lfs merge=lfs -text
*.dat filter=lfs diff=lfs merge=lfs -text
*.dat_old filter=lfs diff=lfs merge=lfs -text
"""

_GITATTRIBUTES_MANAGED = """\
# Managed by worldsnap; rewritten before every backup.
# Large binary world files are stored as plain binary blobs.

*.mca -text -diff -merge
*.mcr -text -diff -merge
*.dat -text -diff -merge
*.dat_old -text -diff -merge
"""

TEMPLATES = {
    IGNORE_TEMPLATE: _GITIGNORE,
    ATTRIBUTES_TEMPLATE_NATIVE: _GITATTRIBUTES_NATIVE,
    ATTRIBUTES_TEMPLATE_MANAGED: _GITATTRIBUTES_MANAGED,
}


def render_template(name: str) -> str:
    try:
        return TEMPLATES[name]
    except KeyError:
        raise ValueError(f"Unknown template: {name!r}") from None


def write_template(name: str, target: Path) -> None:
    """Copy a named template to target, replacing whatever is there."""
    content = render_template(name)
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content)
    logger.debug("Wrote %s to %s", name, target)
