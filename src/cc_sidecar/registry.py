"""Session to task lookups backed by the event store."""

from __future__ import annotations

import logging

from .storage import ChromaStore, TaskMapping

logger = logging.getLogger(__name__)


class TaskRegistry:
    """Resolve which task, if any, launched a Claude Code session."""

    def __init__(self, store: ChromaStore) -> None:
        self._store = store

    def lookup(self, session_id: str) -> TaskMapping | None:
        """Return the latest mapping for ``session_id``.

        Ad-hoc sessions have no mapping, so ``None`` is the normal answer. Store
        failures are also reported as ``None`` so enrichment never blocks
        publishing.
        """

        try:
            mappings = self._store.list_task_mappings(session_id=session_id)
        except Exception as exc:
            logger.debug("Task lookup failed for %s: %s", session_id, exc)
            return None
        if not mappings:
            return None
        return mappings[-1]

    def register(self, session_id: str, task_id: str, owner_uuid: str = "") -> TaskMapping:
        mapping = self._store.record_task_mapping(
            session_id=session_id, task_id=task_id, owner_uuid=owner_uuid
        )
        logger.info("Registered task mapping", extra={"session_id": session_id, "task_id": task_id})
        return mapping


__all__ = ["TaskRegistry"]
