from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cc_sidecar.publisher import (
    EVENT_COMPLETED,
    EVENT_FAILED,
    SUBJECT_COMPLETED,
    SUBJECT_FAILED,
    Event,
    Publisher,
)
from cc_sidecar.registry import TaskRegistry
from cc_sidecar.session import CompletedSession
from cc_sidecar.storage import ChromaStore, ChromaUnavailableError

FIXED_NOW = datetime.fromisoformat("2026-02-14T10:06:00+00:00")


def make_session(exit_code: int = 0) -> CompletedSession:
    return CompletedSession(
        session_id="S1",
        transcript_path="/home/mike/.claude/projects/-work/S1.jsonl",
        files_changed=("/work/a.go", "/work/b.go"),
        working_dir="/work",
        duration_ms=360000,
        exit_code=exit_code,
    )


def make_publisher(store: ChromaStore) -> Publisher:
    return Publisher(store, TaskRegistry(store), source="cc-sidecar", clock=lambda: FIXED_NOW)


def test_successful_session_publishes_completed(store: ChromaStore) -> None:
    TaskRegistry(store).register("S1", "task-42", "owner-1")
    publisher = make_publisher(store)

    event = publisher.handle_completion(make_session())

    assert isinstance(event, Event)
    assert event.type == EVENT_COMPLETED
    assert event.source == "cc-sidecar"
    assert event.data.task_id == "task-42"
    assert event.data.owner_uuid == "owner-1"
    assert event.data.agent_type == "claude-code"
    assert event.data.timestamp == "2026-02-14T10:06:00Z"

    stored = store.search_events(filters={"event_type": EVENT_COMPLETED})
    assert len(stored) == 1
    assert stored[0].id == event.id
    assert stored[0].metadata["subject"] == SUBJECT_COMPLETED
    payload = json.loads(stored[0].document)
    assert payload["data"]["files_changed"] == ["/work/a.go", "/work/b.go"]
    assert payload["data"]["duration_ms"] == 360000


def test_failed_session_publishes_failed_without_mapping(store: ChromaStore) -> None:
    publisher = make_publisher(store)

    event = publisher.handle_completion(make_session(exit_code=1))

    assert event is not None
    assert event.type == EVENT_FAILED
    assert event.data.task_id == ""
    assert event.data.owner_uuid == ""
    stored = store.search_events(filters={"event_type": EVENT_FAILED})
    assert stored[0].metadata["subject"] == SUBJECT_FAILED
    assert stored[0].metadata["exit_code"] == 1


def test_registry_uses_latest_mapping(store: ChromaStore) -> None:
    registry = TaskRegistry(store)
    registry.register("S1", "task-old")
    registry.register("S1", "task-new")

    mapping = registry.lookup("S1")

    assert mapping is not None
    assert mapping.task_id == "task-new"
    assert registry.lookup("unknown") is None


class BrokenStore:
    def list_task_mappings(self, **_):
        raise ChromaUnavailableError("down")

    def record_event(self, **_):
        raise ChromaUnavailableError("down")


def test_registry_unavailable_returns_none() -> None:
    assert TaskRegistry(BrokenStore()).lookup("S1") is None  # type: ignore[arg-type]


def test_publish_error_is_logged_not_raised(caplog) -> None:
    store = BrokenStore()
    publisher = Publisher(store, TaskRegistry(store), clock=lambda: FIXED_NOW)  # type: ignore[arg-type]

    assert publisher.handle_completion(make_session()) is None
    assert "Failed to publish session event for S1" in caplog.text


class LockedMappingStore(ChromaStore):
    def list_task_mappings(self, **_):
        raise RuntimeError("sqlite database is locked")


def test_lookup_failure_still_records_event(tmp_path: Path, stub_client) -> None:
    store = LockedMappingStore(tmp_path / "chroma", client_factory=lambda: stub_client)
    publisher = make_publisher(store)

    event = publisher.handle_completion(make_session())

    assert event is not None
    assert event.data.task_id == ""
    assert [stored.id for stored in store.search_events(filters={"event_type": EVENT_COMPLETED})] == [
        event.id
    ]


def test_payload_timestamp_is_utc() -> None:
    class NoMappings:
        def list_task_mappings(self, **_):
            return []

    local = datetime(2026, 2, 14, 12, 6, tzinfo=timezone(timedelta(hours=2)))
    publisher = Publisher(NoMappings(), TaskRegistry(NoMappings()), clock=lambda: local)  # type: ignore[arg-type]

    event = publisher.build_event(EVENT_COMPLETED, make_session())

    assert event.data.timestamp == "2026-02-14T10:06:00Z"
