"""Data models shared by the session tracker and transcript parser."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class CompletedSession:
    """Parsed outcome of a finished Claude Code session."""

    session_id: str
    transcript_path: str
    files_changed: tuple[str, ...] = field(default_factory=tuple)
    working_dir: str = ""
    duration_ms: int = 0
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(slots=True)
class TrackedFile:
    """Bookkeeping for a transcript file the tracker has seen written."""

    path: str
    last_write: float
    reported: bool = False
    reported_at: float | None = None


__all__ = ["CompletedSession", "TrackedFile"]
