"""Idle detection for Claude Code transcripts."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from .liveness import LivenessOracle, is_claude_running_for_transcript
from .models import CompletedSession, TrackedFile
from .transcript import parse_transcript

logger = logging.getLogger(__name__)

# How long a reported file stays tracked before eviction. Inside this window a
# new write clears the reported flag and starts another idle episode.
CLEANUP_GRACE = 5 * 60.0

OnComplete = Callable[[CompletedSession], None]
TranscriptParser = Callable[[str], CompletedSession | None]


class Tracker:
    """Track active transcripts and report each idle episode once.

    A transcript is complete when it has not been written for
    ``idle_threshold`` seconds and ``process_check`` finds no claude process
    still attached to it. The idle threshold debounces the more expensive
    process scan; the process scan keeps long-thinking sessions alive.
    """

    def __init__(
        self,
        idle_threshold: float,
        poll_interval: float,
        on_complete: OnComplete,
        *,
        process_check: LivenessOracle | None = None,
        parser: TranscriptParser | None = None,
        clock: Callable[[], float] | None = None,
        cleanup_grace: float = CLEANUP_GRACE,
    ) -> None:
        self._idle_threshold = idle_threshold
        self._poll_interval = poll_interval
        self._on_complete = on_complete
        self._process_check = process_check or is_claude_running_for_transcript
        self._parser = parser or parse_transcript
        self._clock = clock or time.monotonic
        self._cleanup_grace = cleanup_grace
        self._files: dict[str, TrackedFile] = {}
        self._lock = threading.Lock()
        self._done = threading.Event()

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    def tracked_paths(self) -> list[str]:
        with self._lock:
            return sorted(self._files)

    def touch(self, path: str) -> None:
        """Mark a transcript as recently written."""

        with self._lock:
            now = self._clock()
            tracked = self._files.get(path)
            if tracked is not None:
                tracked.last_write = now
                tracked.reported = False
                return
            self._files[path] = TrackedFile(path=path, last_write=now)
        logger.info("Tracking new transcript %s", path)

    def start(self) -> None:
        """Run the polling loop until :meth:`stop` is called."""

        logger.info(
            "Session tracker started",
            extra={"idle_threshold": self._idle_threshold, "poll_interval": self._poll_interval},
        )
        while not self._done.wait(self._poll_interval):
            self.check()
        logger.info("Session tracker stopped")

    def stop(self) -> None:
        self._done.set()

    @property
    def stopped(self) -> bool:
        return self._done.is_set()

    def check(self) -> list[CompletedSession]:
        """Run one sweep and return the sessions handed to ``on_complete``."""

        ready: list[str] = []

        with self._lock:
            now = self._clock()
            for path, tracked in list(self._files.items()):
                if tracked.reported:
                    if tracked.reported_at is not None and now - tracked.reported_at >= self._cleanup_grace:
                        logger.debug("Evicting completed transcript %s", path)
                        del self._files[path]
                    continue

                idle = now - tracked.last_write
                if idle < self._idle_threshold:
                    continue

                try:
                    running = self._process_check(path)
                except Exception:
                    logger.exception("Process check failed for %s", path)
                    continue
                if running:
                    continue

                logger.info("Session idle with no claude process, completing %s (idle %.1fs)", path, idle)
                tracked.reported = True
                tracked.reported_at = now
                ready.append(path)

        # Parse and callback run unlocked.
        completed: list[CompletedSession] = []
        for path in ready:
            try:
                session = self._parser(path)
            except Exception:
                logger.exception("Failed to parse transcript %s", path)
                continue
            if session is None:
                continue
            try:
                self._on_complete(session)
            except Exception:
                logger.exception("Completion callback failed for session %s", session.session_id)
                continue
            completed.append(session)
        return completed


__all__ = ["CLEANUP_GRACE", "OnComplete", "Tracker", "TranscriptParser"]
