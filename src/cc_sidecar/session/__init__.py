"""Session completion detection: tracker, transcript parser and liveness checks."""

from .liveness import LivenessOracle, is_claude_running_for_transcript, project_dir_from_transcript
from .models import CompletedSession, TrackedFile
from .tracker import CLEANUP_GRACE, OnComplete, Tracker
from .transcript import extract_session_id_from_path, is_uuid_like, parse_transcript

__all__ = [
    "CLEANUP_GRACE",
    "CompletedSession",
    "LivenessOracle",
    "OnComplete",
    "TrackedFile",
    "Tracker",
    "extract_session_id_from_path",
    "is_claude_running_for_transcript",
    "is_uuid_like",
    "parse_transcript",
    "project_dir_from_transcript",
]
