"""Chroma-based event store for published session events and task mappings."""

from __future__ import annotations

import json
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from .models import TaskMapping

TASK_MAPPING_EVENT = "task_mapping"


class ChromaUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the sidecar."""

    def add(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the sidecar."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


@dataclass(slots=True)
class ChromaEvent:
    """Represents a stored event in Chroma."""

    id: str
    session_id: str
    event_type: str
    document: str
    metadata: dict[str, Any]
    timestamp: datetime


def build_where(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate flat equality filters into a Chroma ``where`` clause."""

    if not filters:
        return None
    if len(filters) == 1:
        return dict(filters)
    return {"$and": [{key: value} for key, value in filters.items()]}


class ChromaStore:
    """Persist session events via ChromaDB."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "cc_sessions",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None
        self._counters: dict[str, int] = defaultdict(int)

    @property
    def path(self) -> Path:
        return self._path

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install cc-sidecar with its storage dependencies"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def _convert_result(self, result: dict[str, list[Any]]) -> list[ChromaEvent]:
        events: list[ChromaEvent] = []
        ids = result.get("ids") or []
        documents = result.get("documents") or []
        metadatas = result.get("metadatas") or []
        for event_id, document, metadata in zip(ids, documents, metadatas):
            metadata = dict(metadata or {})
            timestamp_raw = metadata.get("timestamp")
            timestamp = (
                datetime.fromisoformat(timestamp_raw)
                if isinstance(timestamp_raw, str)
                else self._clock()
            )
            events.append(
                ChromaEvent(
                    id=event_id,
                    session_id=metadata.get("session_id", ""),
                    event_type=metadata.get("event_type", ""),
                    document=document,
                    metadata=metadata,
                    timestamp=timestamp,
                )
            )
        events.sort(key=lambda event: (event.timestamp, event.metadata.get("sequence", 0)))
        return events

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def record_event(
        self,
        *,
        session_id: str,
        event_type: str,
        body: Any,
        metadata: dict[str, Any] | None = None,
        event_id: str | None = None,
    ) -> ChromaEvent:
        collection = self._ensure_collection()
        counter = self._counters[session_id] = self._counters[session_id] + 1
        event_id = event_id or f"{session_id}:{uuid.uuid4().hex}"
        timestamp = self._clock()

        document = body if isinstance(body, str) else json.dumps(body)
        record_metadata: dict[str, Any] = {
            "session_id": session_id,
            "event_type": event_type,
            "timestamp": timestamp.isoformat(),
            "sequence": counter,
        }
        if metadata:
            # Chroma metadata only holds scalars.
            record_metadata.update({key: value for key, value in metadata.items() if value is not None})

        collection.add(
            documents=[document],
            metadatas=[record_metadata],
            ids=[event_id],
        )

        return ChromaEvent(
            id=event_id,
            session_id=session_id,
            event_type=event_type,
            document=document,
            metadata=record_metadata,
            timestamp=timestamp,
        )

    def fetch_session_events(self, session_id: str, *, limit: int | None = None) -> list[ChromaEvent]:
        collection = self._ensure_collection()
        result = collection.get(where=build_where({"session_id": session_id}), limit=limit)
        return self._convert_result(result)

    def search_events(
        self,
        query: str | None = None,
        *,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[ChromaEvent]:
        collection = self._ensure_collection()
        result = collection.get(where=build_where(filters))
        events = self._convert_result(result)
        if query:
            needle = query.lower()
            events = [
                event
                for event in events
                if needle in event.document.lower()
                or any(needle in str(value).lower() for value in event.metadata.values())
            ]
        return events[-limit:] if limit else events

    def record_task_mapping(
        self,
        *,
        session_id: str,
        task_id: str,
        owner_uuid: str = "",
    ) -> TaskMapping:
        event = self.record_event(
            session_id=session_id,
            event_type=TASK_MAPPING_EVENT,
            body={"session_id": session_id, "task_id": task_id, "owner_uuid": owner_uuid},
            metadata={"task_id": task_id, "owner_uuid": owner_uuid},
        )
        return TaskMapping(
            session_id=session_id,
            task_id=task_id,
            owner_uuid=owner_uuid,
            recorded_at=event.timestamp,
        )

    def list_task_mappings(
        self,
        *,
        task_id: str | None = None,
        session_id: str | None = None,
    ) -> list[TaskMapping]:
        filters: dict[str, Any] = {"event_type": TASK_MAPPING_EVENT}
        if task_id:
            filters["task_id"] = task_id
        if session_id:
            filters["session_id"] = session_id

        mappings: list[TaskMapping] = []
        for event in self.search_events(filters=filters):
            doc = json.loads(event.document)
            mappings.append(
                TaskMapping(
                    session_id=doc.get("session_id", event.session_id),
                    task_id=doc.get("task_id", ""),
                    owner_uuid=doc.get("owner_uuid", ""),
                    recorded_at=event.timestamp,
                )
            )
        return mappings


__all__ = ["ChromaEvent", "ChromaStore", "ChromaUnavailableError", "build_where"]
