"""Persistence layer: abstract interface plus in-memory and JSON stores."""

from .repository import OccurrenceQuery, OccurrenceRepository
from .memory import InMemoryRepository
from .json_store import JsonFileRepository

__all__ = [
    "OccurrenceQuery",
    "OccurrenceRepository",
    "InMemoryRepository",
    "JsonFileRepository",
]
