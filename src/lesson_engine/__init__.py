"""
Lesson lifecycle engine for tutoring schedules.

Generates recurring lessons from weekly templates, carries homework
forward between lessons, cancels lessons with makeup or forward-to-next
homework transfer, and lays out overlapping calendar items.
"""

from .engine import LessonEngine
from .models.result import Result
from .persistence.memory import InMemoryRepository
from .persistence.json_store import JsonFileRepository
from .scheduling.cancellation import CancelMode

__version__ = "0.1.0"

__all__ = [
    "LessonEngine",
    "Result",
    "InMemoryRepository",
    "JsonFileRepository",
    "CancelMode",
]
