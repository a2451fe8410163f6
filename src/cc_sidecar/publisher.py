"""Publish completed and failed session events.

The Chroma event store is the outbound sink: each envelope is recorded under
its session id with the bus subject kept in metadata, and downstream
consumers read it back through the store (see ``scripts/cc_sidecar_diag.py``).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from pydantic import BaseModel, Field

from .registry import TaskRegistry
from .session import CompletedSession
from .storage import ChromaEvent, ChromaStore

logger = logging.getLogger(__name__)

SUBJECT_COMPLETED = "swarm.cc.session.completed"
SUBJECT_FAILED = "swarm.cc.session.failed"
EVENT_COMPLETED = "cc.session.completed"
EVENT_FAILED = "cc.session.failed"
AGENT_TYPE = "claude-code"


class PublishError(RuntimeError):
    """Raised when a session event cannot be written to the event store."""


class SessionData(BaseModel):
    """Payload for cc.session.completed/failed events."""

    session_id: str
    task_id: str = ""
    owner_uuid: str = ""
    agent_type: str = AGENT_TYPE
    transcript_path: str
    files_changed: list[str] = Field(default_factory=list)
    exit_code: int
    duration_ms: int
    working_dir: str = ""
    timestamp: str


class Event(BaseModel):
    """Standard event envelope."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: str
    source: str
    timestamp: datetime
    data: SessionData


class Publisher:
    """Write session events, enriched with task mappings, to the event store."""

    def __init__(
        self,
        store: ChromaStore,
        registry: TaskRegistry,
        *,
        source: str = "cc-sidecar",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._registry = registry
        self._source = source
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def publish_completed(self, session: CompletedSession) -> Event:
        return self._publish(SUBJECT_COMPLETED, EVENT_COMPLETED, session)

    def publish_failed(self, session: CompletedSession) -> Event:
        return self._publish(SUBJECT_FAILED, EVENT_FAILED, session)

    def handle_completion(self, session: CompletedSession) -> Event | None:
        """Completion callback for the tracker; routes on the session exit code."""

        try:
            if session.exit_code != 0:
                return self.publish_failed(session)
            return self.publish_completed(session)
        except PublishError as exc:
            logger.error("Failed to publish session event for %s: %s", session.session_id, exc)
            return None

    def build_event(self, event_type: str, session: CompletedSession) -> Event:
        task_id = owner_uuid = ""
        mapping = self._registry.lookup(session.session_id)
        if mapping is not None:
            task_id = mapping.task_id
            owner_uuid = mapping.owner_uuid

        now = self._clock()
        data = SessionData(
            session_id=session.session_id,
            task_id=task_id,
            owner_uuid=owner_uuid,
            transcript_path=session.transcript_path,
            files_changed=list(session.files_changed),
            exit_code=session.exit_code,
            duration_ms=session.duration_ms,
            working_dir=session.working_dir,
            timestamp=now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        )
        return Event(type=event_type, source=self._source, timestamp=now, data=data)

    def _publish(self, subject: str, event_type: str, session: CompletedSession) -> Event:
        event = self.build_event(event_type, session)
        try:
            stored: ChromaEvent = self._store.record_event(
                session_id=session.session_id,
                event_type=event_type,
                body=event.model_dump_json(),
                metadata={
                    "subject": subject,
                    "source": self._source,
                    "task_id": event.data.task_id,
                    "exit_code": session.exit_code,
                    "duration_ms": session.duration_ms,
                    "transcript_path": session.transcript_path,
                },
                event_id=event.id,
            )
        except Exception as exc:
            raise PublishError(f"could not record {event_type} event: {exc}") from exc

        logger.info(
            "Published session event %s for %s",
            subject,
            session.session_id,
            extra={"event_id": stored.id, "task_id": event.data.task_id},
        )
        return event


__all__ = [
    "EVENT_COMPLETED",
    "EVENT_FAILED",
    "Event",
    "PublishError",
    "Publisher",
    "SUBJECT_COMPLETED",
    "SUBJECT_FAILED",
    "SessionData",
]
