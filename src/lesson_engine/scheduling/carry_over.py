"""
Homework carry-over.

When a lesson is opened, the homework assigned at the previous lesson of
the same student becomes that lesson's list of homework checks. The merge
only ever appends: existing checks keep their state, the previous lesson's
assignments stay as history, and re-running it adds nothing new.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from ..models.commands import CarryOverCommand
from ..models.occurrence import HomeworkAssignment, HomeworkCheck, Occurrence
from ..persistence.repository import OccurrenceQuery, OccurrenceRepository
from .index import OccurrenceIndex


logger = logging.getLogger(__name__)


def flatten_assignments(
    assignments: Iterable[HomeworkAssignment],
    note: Optional[str] = None
) -> List[HomeworkCheck]:
    """
    Turn assignments into one open check per (textbook, chapter).

    Examples:
        >>> flatten_assignments([HomeworkAssignment("T1", "Grammar", ["3", "4"])])
        [HomeworkCheck(textbook_id='T1', textbook_name='Grammar', chapter='3', ...),
         HomeworkCheck(textbook_id='T1', textbook_name='Grammar', chapter='4', ...)]
    """
    checks = []
    for assignment in assignments:
        for chapter in assignment.chapters:
            checks.append(HomeworkCheck(
                textbook_id=assignment.textbook_id,
                textbook_name=assignment.textbook_name,
                chapter=chapter,
                is_completed=False,
                note=note,
            ))
    return checks


def merge_checks(
    existing: List[HomeworkCheck],
    candidates: Iterable[HomeworkCheck]
) -> Tuple[List[HomeworkCheck], List[HomeworkCheck]]:
    """
    Append candidates whose (textbook_id, chapter) is not present yet.

    Args:
        existing: Checks already on the lesson (kept first, untouched)
        candidates: Checks to add

    Returns:
        (merged list, checks that were actually added)
    """
    present = {check.key for check in existing}
    added = []
    for candidate in candidates:
        if candidate.key in present:
            continue
        present.add(candidate.key)
        added.append(candidate)
    return list(existing) + added, added


def emits_carry_over(occurrence: Occurrence) -> bool:
    """Regular or makeup lesson that was not cancelled."""
    return occurrence.is_lesson and not occurrence.is_terminal


@dataclass
class CarryOverOutcome:
    """
    What a carry-over run did.

    Attributes:
        occurrence_id: Lesson that was opened
        previous_id: Lesson the homework came from (None if there is none)
        added: Checks appended by this run
        homework_checks: The lesson's full check list afterwards
    """

    occurrence_id: str
    previous_id: Optional[str] = None
    added: List[HomeworkCheck] = field(default_factory=list)
    homework_checks: List[HomeworkCheck] = field(default_factory=list)


class HomeworkCarryOver:
    """
    Pulls the previous lesson's assignments into the opened lesson's checks.

    Cancelled lessons are never a source: their assignments are moved by
    the cancellation workflow instead.
    """

    def __init__(self, repository: OccurrenceRepository):
        self.repository = repository

    async def find_previous_lesson(self, occurrence: Occurrence) -> Optional[Occurrence]:
        """
        Nearest earlier lesson of the same project that emits carry-over.
        """
        if occurrence.project_id is None or occurrence.start_time is None:
            return None

        earlier = await self.repository.query_occurrences(
            OccurrenceQuery(project_id=occurrence.project_id, before=occurrence.start_time)
        )
        index = OccurrenceIndex(earlier)
        return index.previous(
            occurrence.project_id,
            occurrence.start_time,
            lambda o: o.id != occurrence.id and emits_carry_over(o),
        )

    async def on_occurrence_loaded(self, occurrence: Occurrence) -> CarryOverOutcome:
        """
        Run the carry-over for a lesson that was just opened.

        Occurrences without a start time or project, and cancelled ones,
        are left alone.

        Returns:
            CarryOverOutcome describing what was added
        """
        outcome = CarryOverOutcome(
            occurrence_id=occurrence.id,
            homework_checks=list(occurrence.homework_checks),
        )
        if occurrence.start_time is None or occurrence.project_id is None:
            return outcome
        if occurrence.is_terminal:
            return outcome

        previous = await self.find_previous_lesson(occurrence)
        if previous is None:
            return outcome
        outcome.previous_id = previous.id
        if not previous.homework_assignments:
            return outcome

        # re-read so a stale caller copy cannot re-add consumed pairs
        current = await self.repository.get_occurrence(occurrence.id)
        merged, added = merge_checks(
            current.homework_checks,
            flatten_assignments(previous.homework_assignments),
        )
        outcome.homework_checks = merged
        if not added:
            return outcome

        await self.repository.apply(CarryOverCommand(occurrence_id=current.id, homework_checks=merged))
        outcome.added = added
        logger.info(
            f"Carried {len(added)} homework items from {previous.id} to {current.id}"
        )
        return outcome
