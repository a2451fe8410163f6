"""Data models for persistent tracking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class TaskMapping:
    session_id: str
    task_id: str
    owner_uuid: str
    recorded_at: datetime | None = None


__all__ = ["TaskMapping"]
