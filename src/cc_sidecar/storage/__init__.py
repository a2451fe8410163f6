"""Storage abstractions for cc-sidecar."""

from .chroma import ChromaEvent, ChromaStore, ChromaUnavailableError
from .models import TaskMapping

__all__ = [
    "ChromaEvent",
    "ChromaStore",
    "ChromaUnavailableError",
    "TaskMapping",
]
