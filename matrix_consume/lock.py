"""
Advisory per-directory lock.

A marker file inside the consumed directory records the PID of the process
working it.  The lock counts as held while that PID is alive.  Liveness is a
signal probe, so a recycled PID reads as a live owner.  Checking and writing
are separate steps, so two processes starting at the same instant can both
succeed.  Both limitations are accepted for a manually supervised tool.

The marker is never removed on exit; a marker whose PID is dead is stale and
gets overwritten by the next run.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .errors import DirectoryBusy

logger = logging.getLogger(__name__)

LOCK_NAME: str = ".matrix-consume.lock"


def pid_alive(pid: int) -> bool:
    """Return True if a process with ``pid`` exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by someone else
        return True
    return True


class DirectoryLock:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.path = self.directory / LOCK_NAME

    def owner(self) -> Optional[int]:
        """PID recorded in the marker, or None if missing or unreadable."""
        try:
            text = self.path.read_text(encoding="ascii").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Ignoring unreadable lock file %s: %s", self.path, exc)
            return None
        try:
            return int(text)
        except ValueError:
            logger.debug("Ignoring malformed lock file %s: %r", self.path, text)
            return None

    def is_occupied(self) -> bool:
        pid = self.owner()
        return pid is not None and pid_alive(pid)

    def acquire(self) -> None:
        """Claim the directory for this process.

        Raises:
            DirectoryBusy: another live process owns the marker.
        """
        pid = self.owner()
        if pid is not None and pid != os.getpid() and pid_alive(pid):
            raise DirectoryBusy(self.directory, pid)
        if pid is not None and pid != os.getpid():
            logger.info("Reclaiming stale lock left by process %d", pid)
        self.path.write_text(f"{os.getpid()}\n", encoding="ascii")
        logger.info("Acquired lock %s", self.path)
