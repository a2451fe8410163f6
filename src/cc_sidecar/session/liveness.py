"""Detect whether a Claude Code process still owns a transcript.

Transcripts live at ``~/.claude/projects/{project-slug}/{session-id}.jsonl``
where the slug is the absolute working directory with every ``/`` replaced
by ``-`` (``/home/mike/Warren`` becomes ``-home-mike-Warren``). The checks
here reverse that encoding and compare it with the working directory of each
running ``claude`` process found under ``/proc``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

PROC_ROOT = Path("/proc")
CLAUDE_BINARY = "claude"

LivenessOracle = Callable[[str], bool]


def project_dir_from_transcript(transcript_path: str | Path) -> str:
    """Return the working directory encoded in a transcript path.

    Returns ``""`` when the path is not under a ``projects`` directory or the
    decoded directory does not exist, telling the caller to fall back to the
    global check.
    """

    project = Path(transcript_path).parent
    if project.parent.name != "projects":
        return ""

    slug = project.name
    if not slug or slug == ".":
        return ""

    candidate = slug.replace("-", "/")
    if not os.path.isdir(candidate):
        return ""
    return candidate


def _is_claude_cmdline(cmdline: bytes) -> bool:
    for part in cmdline.decode("utf-8", errors="replace").split("\x00"):
        base = os.path.basename(part)
        if base == CLAUDE_BINARY or base.startswith(f"{CLAUDE_BINARY}-"):
            return True
    return False


def is_claude_running_for_transcript(transcript_path: str, *, proc_root: Path = PROC_ROOT) -> bool:
    """Return True if a claude process is running for the transcript's project.

    Without a recoverable project directory any claude process counts, so an
    unrecognised layout never completes a session early.
    """

    project_dir = project_dir_from_transcript(transcript_path)

    try:
        entries = list(proc_root.iterdir())
    except OSError:
        return False

    for entry in entries:
        if not entry.name[:1].isdigit():
            continue

        try:
            cmdline = (entry / "cmdline").read_bytes()
        except OSError:
            continue
        if not _is_claude_cmdline(cmdline):
            continue

        if not project_dir:
            return True

        try:
            cwd = os.readlink(entry / "cwd")
        except OSError:
            continue
        if cwd == project_dir:
            return True

    return False


__all__ = [
    "LivenessOracle",
    "is_claude_running_for_transcript",
    "project_dir_from_transcript",
]
