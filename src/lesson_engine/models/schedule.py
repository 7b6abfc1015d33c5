"""
Schedule definition models.

A schedule definition is a "student" project: a weekly template of lesson
slots plus the date range in which it is valid.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Tuple

from .occurrence import DEFAULT_DURATION, parse_date


ProjectType = Literal["folder", "student", "habit"]
ProjectStatus = Literal["active", "completed", "paused"]


@dataclass(frozen=True)
class TemplateSlot:
    """
    One weekly recurrence slot.

    Attributes:
        day: Day of week, 0=Sunday ... 6=Saturday
        time: Local start time "HH:MM"
        duration: Lesson length in minutes
    """

    day: int
    time: str
    duration: int = DEFAULT_DURATION

    @property
    def hour_minute(self) -> Tuple[int, int]:
        """Parsed (hour, minute) of ``time``."""
        hour, minute = self.time.split(":")
        return int(hour), int(minute)

    def to_dict(self) -> Dict[str, Any]:
        return {"day": self.day, "time": self.time, "duration": self.duration}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'TemplateSlot':
        return cls(
            day=int(d["day"]),
            time=str(d["time"]),
            duration=int(d.get("duration") or DEFAULT_DURATION),
        )


@dataclass
class ScheduleDefinition:
    """
    A student's weekly lesson template.

    Attributes:
        project_id: Project identifier
        name: Student/project name, used as the lesson title
        schedule_template: Weekly slots
        start_date: First date lessons may occur
        end_date: Last date lessons may occur (open-ended if None)
        type: Project type; only "student" projects are scheduled
        status: Lazy generation only runs for "active" projects
        textbooks: Textbook ids assigned to the student

    Examples:
        >>> definition = ScheduleDefinition(
        ...     project_id="student_kim",
        ...     name="Kim",
        ...     schedule_template=[TemplateSlot(day=1, time="16:00", duration=50)],
        ...     start_date=date(2024, 1, 1),
        ... )
        >>> definition.makeup_duration()
        50
    """

    project_id: str
    name: str = ""
    schedule_template: List[TemplateSlot] = field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: ProjectType = "student"
    status: ProjectStatus = "active"
    textbooks: List[str] = field(default_factory=list)

    @property
    def is_schedulable(self) -> bool:
        """Active student project with at least one template slot."""
        return (
            self.type == "student"
            and self.status == "active"
            and len(self.schedule_template) > 0
        )

    def covers(self, day: date) -> bool:
        """Check whether ``day`` lies within [start_date, end_date]."""
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True

    def makeup_duration(self, default: int = DEFAULT_DURATION) -> int:
        """Duration of a makeup lesson: the first slot's, else ``default``."""
        if self.schedule_template and self.schedule_template[0].duration:
            return self.schedule_template[0].duration
        return default

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.project_id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "schedule_template": [slot.to_dict() for slot in self.schedule_template],
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "textbooks": list(self.textbooks),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ScheduleDefinition':
        """Create a definition from a project record (``id`` or ``project_id``)."""
        return cls(
            project_id=str(d.get("project_id") or d["id"]),
            name=d.get("name") or "",
            schedule_template=[
                TemplateSlot.from_dict(s) for s in (d.get("schedule_template") or [])
            ],
            start_date=parse_date(d.get("start_date")),
            end_date=parse_date(d.get("end_date")),
            type=d.get("type") or "student",
            status=d.get("status") or "active",
            textbooks=list(d.get("textbooks") or []),
        )
