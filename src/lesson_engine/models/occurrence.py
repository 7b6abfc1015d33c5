"""
Lesson occurrence data models.

This module provides the dataclasses for one scheduled lesson and the
homework it carries:

- HomeworkAssignment: work given at a lesson, due at the next one
- HomeworkCheck: work due at a lesson, carried from the previous one
- Occurrence: one concrete lesson on the calendar
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Set, Tuple


DEFAULT_DURATION = 40  # minutes

# Note attached to checks that were moved off a cancelled lesson
CARRIED_FROM_CANCELLATION_NOTE = "Carried over from cancelled lesson"

OccurrenceStatusType = Literal["scheduled", "completed", "cancelled", "inbox", "waiting"]

CheckKey = Tuple[str, str]


class OccurrenceStatus(Enum):
    """Task status values shared with the generic task board."""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INBOX = "inbox"
    WAITING = "waiting"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp.

    Args:
        value: ISO string, datetime, or None

    Returns:
        datetime (timezone-aware when the input carries an offset) or None

    Examples:
        >>> parse_timestamp("2024-01-01T10:00:00Z").tzinfo is not None
        True
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class HomeworkAssignment:
    """
    Homework given at a lesson.

    Attributes:
        textbook_id: Textbook identifier
        textbook_name: Cached textbook name for display
        chapters: Chapters to prepare for the next lesson, in order
    """

    textbook_id: str
    textbook_name: str = ""
    chapters: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "textbook_id": self.textbook_id,
            "textbook_name": self.textbook_name,
            "chapters": list(self.chapters),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'HomeworkAssignment':
        return cls(
            textbook_id=str(d["textbook_id"]),
            textbook_name=d.get("textbook_name") or "",
            chapters=[str(c) for c in (d.get("chapters") or [])],
        )


@dataclass
class HomeworkCheck:
    """
    Homework due at a lesson.

    Attributes:
        textbook_id: Textbook identifier
        textbook_name: Cached textbook name for display
        chapter: Chapter label ("1", "2A", ...)
        is_completed: Whether the student finished it
        completed_at: ISO timestamp of completion
        note: Free-text remark (also marks checks moved off a cancelled lesson)
    """

    textbook_id: str
    textbook_name: str
    chapter: str
    is_completed: bool = False
    completed_at: Optional[str] = None
    note: Optional[str] = None

    @property
    def key(self) -> CheckKey:
        """Identity of the check within one occurrence."""
        return (self.textbook_id, self.chapter)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "textbook_id": self.textbook_id,
            "textbook_name": self.textbook_name,
            "chapter": self.chapter,
            "is_completed": self.is_completed,
        }
        if self.completed_at is not None:
            d["completed_at"] = self.completed_at
        if self.note is not None:
            d["note"] = self.note
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'HomeworkCheck':
        return cls(
            textbook_id=str(d["textbook_id"]),
            textbook_name=d.get("textbook_name") or "",
            chapter=str(d["chapter"]),
            is_completed=bool(d.get("is_completed", False)),
            completed_at=d.get("completed_at"),
            note=d.get("note"),
        )


@dataclass
class Occurrence:
    """
    One lesson on the calendar.

    ``is_cancelled`` and ``status == CANCELLED`` are always written together;
    both are read for records written by older clients that set only one.

    Attributes:
        id: Opaque identifier assigned by the store
        project_id: Owning schedule definition
        start_time: Timezone-aware start (None for unscheduled tasks)
        duration: Length in minutes
        status: Task status
        title: Display title (the student's name for lessons)
        is_auto_generated: Produced by the generator from a template slot
        is_makeup: Manually placed substitute lesson
        is_cancelled: Cancelled (terminal)
        is_manually_modified: Moved or resized by the user
        slot_date: Calendar date of the template slot it was generated for
        slot_time: "HH:MM" of the template slot it was generated for
        replaces_occurrence_id: For makeups, the cancelled lesson they replace
        homework_assignments: Work assigned at this lesson
        homework_checks: Work due at this lesson

    Examples:
        >>> from datetime import timezone
        >>> lesson = Occurrence(
        ...     id="occ_1",
        ...     project_id="student_kim",
        ...     start_time=datetime(2024, 1, 1, 16, 0, tzinfo=timezone.utc),
        ...     is_auto_generated=True,
        ... )
        >>> lesson.end_time.hour
        16
    """

    id: str
    project_id: Optional[str] = None
    start_time: Optional[datetime] = None
    duration: int = DEFAULT_DURATION
    status: OccurrenceStatus = OccurrenceStatus.SCHEDULED
    title: str = ""
    is_auto_generated: bool = False
    is_makeup: bool = False
    is_cancelled: bool = False
    is_manually_modified: bool = False
    slot_date: Optional[date] = None
    slot_time: Optional[str] = None
    replaces_occurrence_id: Optional[str] = None
    homework_assignments: List[HomeworkAssignment] = field(default_factory=list)
    homework_checks: List[HomeworkCheck] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def end_time(self) -> Optional[datetime]:
        """Start plus duration, or None when the occurrence is unscheduled."""
        if self.start_time is None:
            return None
        return self.start_time + timedelta(minutes=self.duration or DEFAULT_DURATION)

    @property
    def is_lesson(self) -> bool:
        """Regular or makeup lesson (as opposed to a plain task)."""
        return self.is_auto_generated or self.is_makeup

    @property
    def is_terminal(self) -> bool:
        """Cancelled lessons never transition again."""
        return self.is_cancelled or self.status == OccurrenceStatus.CANCELLED

    def check_keys(self) -> Set[CheckKey]:
        """Set of (textbook_id, chapter) pairs already due at this lesson."""
        return {check.key for check in self.homework_checks}

    def with_updates(self, updates: Dict[str, Any]) -> 'Occurrence':
        """
        Return a copy with ``updates`` applied.

        Raises:
            KeyError: If an update names an unknown field
        """
        known = {f.name for f in fields(self)}
        unknown = set(updates) - known
        if unknown:
            raise KeyError(f"Unknown occurrence fields: {', '.join(sorted(unknown))}")
        return replace(self, **updates)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to a JSON-serialisable dictionary.

        Returns:
            Dictionary representation of the occurrence
        """
        return {
            "id": self.id,
            "project_id": self.project_id,
            "start_time": _iso(self.start_time),
            "duration": self.duration,
            "status": self.status.value,
            "title": self.title,
            "is_auto_generated": self.is_auto_generated,
            "is_makeup": self.is_makeup,
            "is_cancelled": self.is_cancelled,
            "is_manually_modified": self.is_manually_modified,
            "slot_date": self.slot_date.isoformat() if self.slot_date else None,
            "slot_time": self.slot_time,
            "replaces_occurrence_id": self.replaces_occurrence_id,
            "homework_assignments": [a.to_dict() for a in self.homework_assignments],
            "homework_checks": [c.to_dict() for c in self.homework_checks],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Occurrence':
        """
        Create an occurrence from its dictionary form.

        Missing flags default to False, a missing duration to 40 minutes,
        and ``status``/``is_cancelled`` are reconciled so either one alone
        marks the lesson cancelled.
        """
        status = OccurrenceStatus(d.get("status") or OccurrenceStatus.SCHEDULED.value)
        is_cancelled = bool(d.get("is_cancelled", False))
        if status == OccurrenceStatus.CANCELLED:
            is_cancelled = True
        elif is_cancelled:
            status = OccurrenceStatus.CANCELLED

        return cls(
            id=str(d["id"]),
            project_id=d.get("project_id"),
            start_time=parse_timestamp(d.get("start_time")),
            duration=int(d.get("duration") or DEFAULT_DURATION),
            status=status,
            title=d.get("title") or "",
            is_auto_generated=bool(d.get("is_auto_generated", False)),
            is_makeup=bool(d.get("is_makeup", False)),
            is_cancelled=is_cancelled,
            is_manually_modified=bool(d.get("is_manually_modified", False)),
            slot_date=parse_date(d.get("slot_date")),
            slot_time=d.get("slot_time"),
            replaces_occurrence_id=d.get("replaces_occurrence_id"),
            homework_assignments=[
                HomeworkAssignment.from_dict(a) for a in (d.get("homework_assignments") or [])
            ],
            homework_checks=[
                HomeworkCheck.from_dict(c) for c in (d.get("homework_checks") or [])
            ],
            created_at=parse_timestamp(d.get("created_at")),
            updated_at=parse_timestamp(d.get("updated_at")),
        )
