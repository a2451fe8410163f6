"""File watcher for Claude Code transcript directories.

Uses `watchfiles` to monitor the projects directory recursively and touches
the session tracker for every transcript that is created or written.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Protocol

from watchfiles import Change, watch

from .session.transcript import TRANSCRIPT_SUFFIX

logger = logging.getLogger(__name__)

# Pause before re-entering watch() after it fails.
RESTART_DELAY = 1.0


class Toucher(Protocol):
    """Anything that accepts transcript write notifications."""

    def touch(self, path: str) -> None:
        ...


def classify_changes(changes: Iterable[tuple[Change, str]]) -> list[str]:
    """Return transcript paths that were added or modified, in a stable order."""

    paths: set[str] = set()
    for change_type, path in changes:
        if not path.endswith(TRANSCRIPT_SUFFIX):
            continue
        if change_type in (Change.added, Change.modified):
            paths.add(path)
    return sorted(paths)


class TranscriptWatcher:
    """Background watcher that forwards transcript writes to a tracker."""

    def __init__(
        self,
        directory: Path | str,
        tracker: Toucher,
        *,
        restart_delay: float = RESTART_DELAY,
    ) -> None:
        self._directory = Path(directory)
        if not self._directory.is_dir():
            raise FileNotFoundError(f"Watch directory does not exist: {self._directory}")
        self._tracker = tracker
        self._restart_delay = restart_delay
        self._stop_event = threading.Event()

    @property
    def directory(self) -> Path:
        return self._directory

    def handle_changes(self, changes: Iterable[tuple[Change, str]]) -> list[str]:
        touched = classify_changes(changes)
        for path in touched:
            self._tracker.touch(path)
        return touched

    def start(self) -> None:
        """Watch for transcript changes. Blocks until :meth:`stop` is called."""

        logger.info("Watching for transcript changes in %s", self._directory)
        while True:
            try:
                for changes in watch(
                    self._directory,
                    stop_event=self._stop_event,
                    recursive=True,
                    raise_interrupt=False,
                ):
                    try:
                        self.handle_changes(changes)
                    except Exception:
                        logger.exception("Failed to handle transcript changes")
                break
            except Exception:
                logger.exception(
                    "File watcher error, restarting in %.1fs", self._restart_delay
                )
            if self._stop_event.wait(self._restart_delay):
                break
        logger.info("File watcher stopped")

    def stop(self) -> None:
        self._stop_event.set()


__all__ = ["Toucher", "TranscriptWatcher", "classify_changes"]
