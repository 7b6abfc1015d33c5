"""
Builders shared by the test modules.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

from lesson_engine.models.errors import PersistenceError
from lesson_engine.models.occurrence import HomeworkAssignment, HomeworkCheck


KST = ZoneInfo("Asia/Seoul")


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def kst(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=KST)


def assignment(textbook_id, *chapters, name="") -> HomeworkAssignment:
    return HomeworkAssignment(textbook_id=textbook_id, textbook_name=name, chapters=list(chapters))


def check(textbook_id, chapter, completed=False, note=None) -> HomeworkCheck:
    return HomeworkCheck(
        textbook_id=textbook_id,
        textbook_name="",
        chapter=chapter,
        is_completed=completed,
        note=note,
    )


def fail_once_on(repo, command_type):
    """Make repo.apply raise PersistenceError the first time it sees ``command_type``."""
    real_apply = repo.apply
    state = {"failed": False}

    async def flaky_apply(command):
        if isinstance(command, command_type) and not state["failed"]:
            state["failed"] = True
            raise PersistenceError("write timed out")
        return await real_apply(command)

    return patch.object(repo, "apply", AsyncMock(side_effect=flaky_apply))
