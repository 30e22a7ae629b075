"""
Candidate file stream for the consumed directory.

The stream starts with a snapshot of the regular files already present,
shuffled once so that a large backlog is drained in random order.  In watch
mode it then turns into an unbounded feed of paths reported by `watchdog`:
files created in the directory, files moved into it and files closed after
writing (where the platform reports close events).  Only the top level of the
directory is considered.

The observer is started before the snapshot is taken so nothing that lands
in between is lost; a file seen both ways is simply offered twice and the
second offer is dropped downstream once the first has been consumed.

Dependencies: `watchdog` for filesystem events, installed with
``pip install watchdog``.
"""

import logging
import os
import random
from pathlib import Path
from queue import Queue
from typing import Iterator, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


def snapshot(directory: Path, rng: Optional[random.Random] = None) -> List[Path]:
    """Return the regular files directly inside ``directory`` in random order."""
    files = [
        Path(entry.path)
        for entry in os.scandir(directory)
        if entry.is_file(follow_symlinks=False)
    ]
    (rng or random).shuffle(files)
    return files


class NewFileHandler(FileSystemEventHandler):
    """Handler that enqueues paths of new or freshly written files."""

    def __init__(self, queue: Queue, directory: Path) -> None:
        self.queue = queue
        self.directory = Path(directory)

    def _put(self, path) -> None:
        path = Path(os.fsdecode(path))
        if path.parent != self.directory:
            return
        logger.debug("Filesystem event for %s", path.name)
        self.queue.put(path)

    def on_created(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._put(event.src_path)

    def on_moved(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._put(event.dest_path)

    def on_closed(self, event) -> None:  # type: ignore[override]
        if event.is_directory:
            return
        self._put(event.src_path)


def iter_files(
    directory: Path, watch: bool = False, rng: Optional[random.Random] = None
) -> Iterator[Path]:
    """Yield absolute paths of candidate files in ``directory``.

    Without ``watch`` the iterator ends after the snapshot.  With ``watch``
    it blocks waiting for filesystem events and never ends on its own; the
    observer is shut down when the generator is closed.

    Args:
        directory: directory to consume; not descended into.
        watch: keep yielding new files after the snapshot.
        rng: random source used for the snapshot order.
    """
    directory = Path(directory).resolve()
    if not watch:
        yield from snapshot(directory, rng)
        return

    event_queue: Queue = Queue()
    observer = Observer()
    observer.schedule(NewFileHandler(event_queue, directory), str(directory), recursive=False)
    observer.start()
    logger.info("Watching directory: %s", directory)
    try:
        yield from snapshot(directory, rng)
        while True:
            yield event_queue.get()
    finally:
        logger.debug("Stopping observer for %s", directory)
        observer.stop()
        observer.join()
