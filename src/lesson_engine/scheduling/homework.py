"""
User edits of lesson homework.

Toggling a check, recording the assignments given at a lesson, and
removing a textbook from a student's whole lesson history.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..models.commands import HomeworkUpdateCommand
from ..models.errors import HomeworkCheckNotFoundError, TerminalStateError
from ..models.occurrence import HomeworkAssignment, HomeworkCheck
from ..persistence.repository import OccurrenceQuery, OccurrenceRepository


logger = logging.getLogger(__name__)


def normalize_assignments(assignments: List[HomeworkAssignment]) -> List[HomeworkAssignment]:
    """
    Merge entries for the same textbook and drop repeated chapters.

    First-seen order is kept for textbooks and chapters.

    Examples:
        >>> normalize_assignments([
        ...     HomeworkAssignment("T1", "Grammar", ["1", "2"]),
        ...     HomeworkAssignment("T1", "Grammar", ["2", "3"]),
        ... ])
        [HomeworkAssignment(textbook_id='T1', textbook_name='Grammar', chapters=['1', '2', '3'])]
    """
    merged: Dict[str, HomeworkAssignment] = {}
    for assignment in assignments:
        target = merged.get(assignment.textbook_id)
        if target is None:
            target = HomeworkAssignment(
                textbook_id=assignment.textbook_id,
                textbook_name=assignment.textbook_name,
                chapters=[],
            )
            merged[assignment.textbook_id] = target
        for chapter in assignment.chapters:
            if chapter not in target.chapters:
                target.chapters.append(chapter)
    return [a for a in merged.values() if a.chapters]


class HomeworkEditor:
    """Applies user homework edits through HomeworkUpdateCommand."""

    def __init__(
        self,
        repository: OccurrenceRepository,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repository = repository
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def toggle_check(
        self,
        occurrence_id: str,
        textbook_id: str,
        chapter: str,
        completed: bool
    ) -> HomeworkCheck:
        """
        Mark one homework check done or open.

        Raises:
            HomeworkCheckNotFoundError: If the lesson has no such check
        """
        occurrence = await self.repository.get_occurrence(occurrence_id)
        checks = []
        toggled = None
        for check in occurrence.homework_checks:
            if check.key == (textbook_id, chapter):
                check = HomeworkCheck(
                    textbook_id=check.textbook_id,
                    textbook_name=check.textbook_name,
                    chapter=check.chapter,
                    is_completed=completed,
                    completed_at=self.clock().isoformat() if completed else None,
                    note=check.note,
                )
                toggled = check
            checks.append(check)

        if toggled is None:
            raise HomeworkCheckNotFoundError(occurrence_id, textbook_id, chapter)

        await self.repository.apply(
            HomeworkUpdateCommand(occurrence_id=occurrence_id, homework_checks=checks)
        )
        return toggled

    async def set_assignments(
        self,
        occurrence_id: str,
        assignments: List[HomeworkAssignment]
    ) -> List[HomeworkAssignment]:
        """
        Record the homework given at a lesson.

        Raises:
            TerminalStateError: If the lesson was cancelled
        """
        occurrence = await self.repository.get_occurrence(occurrence_id)
        if occurrence.is_terminal:
            raise TerminalStateError(occurrence_id)

        normalized = normalize_assignments(assignments)
        await self.repository.apply(
            HomeworkUpdateCommand(occurrence_id=occurrence_id, homework_assignments=normalized)
        )
        return normalized

    async def purge_textbook(self, project_id: str, textbook_id: str) -> int:
        """
        Remove a textbook from every check and assignment of a project.

        Returns:
            Number of lessons that changed
        """
        lessons = await self.repository.query_occurrences(OccurrenceQuery(project_id=project_id))
        changed = 0
        for lesson in lessons:
            checks = [c for c in lesson.homework_checks if c.textbook_id != textbook_id]
            assignments = [a for a in lesson.homework_assignments if a.textbook_id != textbook_id]
            if (len(checks) == len(lesson.homework_checks)
                    and len(assignments) == len(lesson.homework_assignments)):
                continue

            await self.repository.apply(HomeworkUpdateCommand(
                occurrence_id=lesson.id,
                homework_checks=checks,
                homework_assignments=assignments,
            ))
            changed += 1

        logger.info(f"Removed textbook {textbook_id} from {changed} lessons of {project_id}")
        return changed
