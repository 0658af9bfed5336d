"""Finding package.json files in a workspace."""

import logging
import os
from pathlib import Path

from .config import DEFAULT_IGNORE, IGNORE_FILE
from .match import compile_glob

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


def load_ignore(root: Path) -> list[str]:
    """Return the ignore globs for a workspace.

    A ``.paketignore`` file in the root replaces the defaults entirely.
    """
    ignore_file = root / IGNORE_FILE
    if not ignore_file.exists():
        return list(DEFAULT_IGNORE)

    patterns = []
    for line in ignore_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    logger.debug("Loaded %d ignore patterns from %s", len(patterns), ignore_file)
    return patterns


def find_manifests(root: Path, ignore: list[str]) -> list[Path]:
    """List every package.json under ``root`` not excluded by ``ignore``.

    Ignored directories are pruned instead of walked. Hidden directories
    such as ``.next`` or ``.cache`` are never entered.
    """
    compiled = [compile_glob(p) for p in ignore]

    def ignored(relative: str) -> bool:
        return any(regex.match(relative) for regex in compiled)

    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if base == "." else base + "/"

        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and not ignored(f"{prefix}{d}/")
        )
        if MANIFEST_NAME in filenames and not ignored(prefix + MANIFEST_NAME):
            found.append(Path(dirpath) / MANIFEST_NAME)

    logger.info("Found %d manifests under %s", len(found), root)
    return found
