"""
Disposal of files that were posted successfully.

A posted file must not stay in the consumed directory, otherwise it would be
posted again on the next pass.  It is moved to the configured folder, or sent
to the desktop trash, or as a last resort deleted.  When none of that works
the run stops with :class:`CleanupFailed`.
"""

import logging
import os
import random
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import CleanupFailed

logger = logging.getLogger(__name__)

TRASH_COMMANDS: List[List[str]] = [["gio", "trash", "--"], ["trash-put", "--"]]


def free_destination(directory: Path, name: str, rng: Optional[random.Random] = None) -> Path:
    """Return a path in ``directory`` for ``name`` that does not exist yet."""
    target = directory / name
    stem, suffix = os.path.splitext(name)
    while target.exists():
        target = directory / f"{stem}_{(rng or random).randint(0, 99999)}{suffix}"
    return target


def move_file(path: Path, directory: Path, rng: Optional[random.Random] = None) -> Path:
    target = free_destination(directory, path.name, rng)
    try:
        shutil.move(str(path), str(target))
    except OSError as exc:
        raise CleanupFailed(f"Cannot move {path} to {directory}: {exc}") from exc
    logger.info("Moved %s to %s as %s", path.name, directory, target.name)
    return target


def trash_file(path: Path) -> bool:
    """Send ``path`` to the trash with the first tool that works."""
    for cmd in TRASH_COMMANDS:
        if shutil.which(cmd[0]) is None:
            continue
        result = subprocess.run(
            [*cmd, str(path)], stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, text=True
        )
        if result.returncode == 0:
            logger.info("Moved %s to trash", path.name)
            return True
        logger.warning("%s could not trash %s: %s", cmd[0], path.name, result.stderr.strip())
    return False


def delete_file(path: Path) -> None:
    if not path.exists():
        return
    try:
        path.unlink()
    except OSError as exc:
        raise CleanupFailed(f"Cannot delete {path} after upload: {exc}") from exc
    logger.info("Deleted %s", path.name)


def dispose(path: Path, move_to: Optional[Path] = None) -> Optional[Path]:
    """Remove an uploaded file from the consumed directory.

    Args:
        path: the original file, never a converted copy.
        move_to: destination folder; if unset the file is trashed.

    Returns:
        The new location when moved, otherwise None.

    Raises:
        CleanupFailed: the file could be neither moved, trashed nor deleted.
    """
    path = Path(path)
    if move_to is not None:
        return move_file(path, Path(move_to))
    if trash_file(path):
        return None
    logger.warning("No usable trash for %s, deleting it", path.name)
    delete_file(path)
    return None
