"""Extract session metadata from Claude Code JSONL transcripts."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .models import CompletedSession

logger = logging.getLogger(__name__)

TRANSCRIPT_SUFFIX = ".jsonl"
MAX_LINE_BYTES = 10 * 1024 * 1024

# Tools whose input.file_path is counted as a changed file.
_WRITE_TOOLS = {"Write", "Edit"}

_UUID_RE = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
_FRACTION_RE = re.compile(r"\.(\d+)")


def is_uuid_like(value: str) -> bool:
    """Return True when ``value`` has the 8-4-4-4-12 hexadecimal layout."""

    return len(value) == 36 and _UUID_RE.fullmatch(value) is not None


def extract_session_id_from_path(path: str | Path) -> str:
    """Derive a session id from a transcript filename.

    Filenames are normally bare UUIDs (``cfa3335c-....jsonl``) but may carry a
    prefix, so the trailing 36 characters are tried first. When they do not
    look like a UUID the whole stem is returned unchanged.
    """

    base = Path(path).name
    if base.endswith(TRANSCRIPT_SUFFIX):
        base = base[: -len(TRANSCRIPT_SUFFIX)]

    if len(base) >= 36:
        candidate = base[-36:]
        if is_uuid_like(candidate):
            return candidate
    return base


def _normalize_fraction(match: re.Match[str]) -> str:
    # fromisoformat only takes microsecond precision on older interpreters.
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    cleaned = _FRACTION_RE.sub(_normalize_fraction, value.strip().replace("Z", "+00:00"))
    try:
        parsed = datetime.fromisoformat(cleaned)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_assistant(record: dict[str, Any]) -> bool:
    if record.get("type") == "assistant":
        return True
    message = record.get("message")
    return isinstance(message, dict) and message.get("role") == "assistant"


def _collect_file_changes(record: dict[str, Any], files: set[str]) -> None:
    message = record.get("message")
    if not isinstance(message, dict) or message.get("role") != "assistant":
        return

    content = message.get("content")
    if not isinstance(content, list):
        return

    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        if block.get("name") not in _WRITE_TOOLS:
            continue
        tool_input = block.get("input")
        if not isinstance(tool_input, dict):
            continue
        file_path = tool_input.get("file_path")
        if isinstance(file_path, str) and file_path:
            files.add(file_path)


def parse_transcript(path: str | Path) -> CompletedSession | None:
    """Parse a transcript into a :class:`CompletedSession`.

    Returns ``None`` when the file cannot be opened or no session id can be
    determined. Malformed lines are skipped; a read error or an oversized
    line ends the scan early and the data gathered so far is used.

    The exit code is a heuristic: transcripts carry no exit status, so a
    session without a single assistant message is reported as failed
    (``1``), anything else as successful (``0``).
    """

    transcript_path = str(path)
    session_id = ""
    working_dir = ""
    files_changed: set[str] = set()
    first_ts: datetime | None = None
    last_ts: datetime | None = None
    has_assistant = False

    try:
        handle = open(transcript_path, "rb")
    except OSError as exc:
        logger.error("Failed to open transcript %s: %s", transcript_path, exc)
        return None

    with handle:
        try:
            while True:
                raw = handle.readline(MAX_LINE_BYTES + 1)
                if not raw:
                    break
                line = raw.rstrip(b"\r\n")
                if len(line) > MAX_LINE_BYTES:
                    logger.warning(
                        "Transcript line exceeds %d bytes, stopping scan of %s",
                        MAX_LINE_BYTES,
                        transcript_path,
                    )
                    break
                if not line.strip():
                    continue

                try:
                    record = json.loads(line)
                except ValueError:
                    continue
                if not isinstance(record, dict):
                    continue

                value = record.get("sessionId")
                if not session_id and isinstance(value, str) and value:
                    session_id = value

                value = record.get("cwd")
                if not working_dir and isinstance(value, str) and value:
                    working_dir = value

                timestamp = parse_timestamp(record.get("timestamp"))
                if timestamp is not None:
                    if first_ts is None or timestamp < first_ts:
                        first_ts = timestamp
                    if last_ts is None or timestamp > last_ts:
                        last_ts = timestamp

                if _is_assistant(record):
                    has_assistant = True

                _collect_file_changes(record, files_changed)
        except OSError as exc:
            logger.warning("Error reading transcript %s: %s", transcript_path, exc)

    if not session_id:
        session_id = extract_session_id_from_path(transcript_path)
    if not session_id:
        logger.warning("Could not determine session id for %s", transcript_path)
        return None

    duration_ms = 0
    if first_ts is not None and last_ts is not None:
        duration_ms = (last_ts - first_ts) // timedelta(milliseconds=1)

    return CompletedSession(
        session_id=session_id,
        transcript_path=transcript_path,
        files_changed=tuple(sorted(files_changed)),
        working_dir=working_dir,
        duration_ms=duration_ms,
        exit_code=0 if has_assistant else 1,
    )


__all__ = [
    "MAX_LINE_BYTES",
    "TRANSCRIPT_SUFFIX",
    "extract_session_id_from_path",
    "is_uuid_like",
    "parse_timestamp",
    "parse_transcript",
]
