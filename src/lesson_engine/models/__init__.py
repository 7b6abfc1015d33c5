"""
Data models of the lesson engine.

Occurrences (lessons), schedule definitions (weekly templates), typed
update commands, the Result wrapper and the error hierarchy.
"""

from .occurrence import (
    CARRIED_FROM_CANCELLATION_NOTE,
    DEFAULT_DURATION,
    HomeworkAssignment,
    HomeworkCheck,
    Occurrence,
    OccurrenceStatus,
)
from .schedule import ScheduleDefinition, TemplateSlot
from .result import Result, ResultStatus

__all__ = [
    "CARRIED_FROM_CANCELLATION_NOTE",
    "DEFAULT_DURATION",
    "HomeworkAssignment",
    "HomeworkCheck",
    "Occurrence",
    "OccurrenceStatus",
    "ScheduleDefinition",
    "TemplateSlot",
    "Result",
    "ResultStatus",
]
