"""
Typed update commands.

Every change the engine makes to an existing occurrence goes through one
of these commands. Each command knows the exact partial field set it
writes, so no code path can forget a field (for example clearing
``homework_assignments`` when a lesson is cancelled).

Commands are validated by ``CommandValidator`` before the store applies
them (see ``OccurrenceRepository.apply``).
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from .occurrence import HomeworkAssignment, HomeworkCheck, OccurrenceStatus


@dataclass(frozen=True)
class RescheduleCommand:
    """
    Move or resize a lesson.

    Issued by template reconciliation (``manual=False``) and by the user
    dragging/resizing a lesson (``manual=True``, which protects the lesson
    from later reconciliation).
    """

    occurrence_id: str
    start_time: datetime
    duration: int
    slot_time: Optional[str] = None
    manual: bool = False

    def to_fields(self) -> Dict[str, Any]:
        updates: Dict[str, Any] = {
            "start_time": self.start_time,
            "duration": self.duration,
        }
        if self.slot_time is not None:
            updates["slot_time"] = self.slot_time
        if self.manual:
            updates["is_manually_modified"] = True
        return updates


@dataclass(frozen=True)
class CancelWithMakeupCommand:
    """Cancel a lesson whose homework moved to a makeup lesson."""

    occurrence_id: str
    makeup_occurrence_id: str

    def to_fields(self) -> Dict[str, Any]:
        return {
            "is_cancelled": True,
            "status": OccurrenceStatus.CANCELLED,
            "homework_assignments": [],
        }


@dataclass(frozen=True)
class CancelForwardCommand:
    """Cancel a lesson whose homework moved to the next lesson."""

    occurrence_id: str
    next_occurrence_id: str

    def to_fields(self) -> Dict[str, Any]:
        return {
            "is_cancelled": True,
            "status": OccurrenceStatus.CANCELLED,
            "homework_assignments": [],
        }


@dataclass(frozen=True)
class CarryOverCommand:
    """Replace a lesson's homework checks with a forward-merged list."""

    occurrence_id: str
    homework_checks: List[HomeworkCheck]

    def to_fields(self) -> Dict[str, Any]:
        return {"homework_checks": list(self.homework_checks)}


@dataclass(frozen=True)
class HomeworkUpdateCommand:
    """User edit of a lesson's homework (toggle, new assignments, purge)."""

    occurrence_id: str
    homework_checks: Optional[List[HomeworkCheck]] = None
    homework_assignments: Optional[List[HomeworkAssignment]] = None

    def to_fields(self) -> Dict[str, Any]:
        updates: Dict[str, Any] = {}
        if self.homework_checks is not None:
            updates["homework_checks"] = list(self.homework_checks)
        if self.homework_assignments is not None:
            updates["homework_assignments"] = list(self.homework_assignments)
        return updates


OccurrenceCommand = Union[
    RescheduleCommand,
    CancelWithMakeupCommand,
    CancelForwardCommand,
    CarryOverCommand,
    HomeworkUpdateCommand,
]
