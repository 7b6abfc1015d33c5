"""
Shared fixtures for lesson engine tests.
"""

from datetime import date

import pytest

from lesson_engine.models.occurrence import Occurrence, OccurrenceStatus
from lesson_engine.models.schedule import ScheduleDefinition, TemplateSlot
from lesson_engine.persistence.memory import InMemoryRepository

from tests.helpers import KST, FixedClock, kst


@pytest.fixture
def tz():
    return KST


@pytest.fixture
def clock():
    """Monday 2024-01-01 08:00 KST, before that day's lessons."""
    return FixedClock(kst(2024, 1, 1, 8, 0))


@pytest.fixture
def repo(clock):
    return InMemoryRepository(clock=clock)


@pytest.fixture
def definition():
    """Kim: Monday 16:00 (50 min) and Wednesday 17:00 (40 min)."""
    return ScheduleDefinition(
        project_id="student_kim",
        name="Kim",
        schedule_template=[
            TemplateSlot(day=1, time="16:00", duration=50),
            TemplateSlot(day=3, time="17:00", duration=40),
        ],
        start_date=date(2024, 1, 1),
    )


@pytest.fixture
def make_lesson(repo):
    """Insert a lesson with a fixed id straight into the store."""

    def _make(
        occurrence_id,
        start_time,
        project_id="student_kim",
        duration=50,
        assignments=None,
        checks=None,
        cancelled=False,
        **fields
    ) -> Occurrence:
        fields.setdefault("is_auto_generated", True)
        fields.setdefault(
            "status", OccurrenceStatus.CANCELLED if cancelled else OccurrenceStatus.SCHEDULED
        )
        occurrence = Occurrence(
            id=occurrence_id,
            project_id=project_id,
            start_time=start_time,
            duration=duration,
            is_cancelled=cancelled,
            homework_assignments=list(assignments or []),
            homework_checks=list(checks or []),
            **fields
        )
        return repo.add_occurrence(occurrence)

    return _make
