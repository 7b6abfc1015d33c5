"""
Cancellation / makeup workflow.

Cancelling a lesson moves its homework somewhere before the lesson is
marked cancelled:

- makeup-first: the homework waits in a pending context until the user
  picks a slot for a makeup lesson. The makeup lesson is created with the
  homework as open checks, and only then is the original cancelled.
  Abandoning the placement discards the context and changes nothing.
- forward-next: the homework is appended to the next live lesson of the
  same student, then the original is cancelled.

Steps run strictly in order. Both branches can be re-run after a partial
failure: homework is merged with dedup, and a makeup lesson already
created for the cancelled one is reused.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ..models.commands import CancelForwardCommand, CancelWithMakeupCommand, CarryOverCommand
from ..models.errors import (
    LessonEngineError,
    NoEligibleOccurrenceError,
    PartialCancellationError,
    PersistenceError,
    ScheduleNotFoundError,
    TerminalStateError,
)
from ..models.occurrence import (
    CARRIED_FROM_CANCELLATION_NOTE,
    DEFAULT_DURATION,
    HomeworkAssignment,
    HomeworkCheck,
    Occurrence,
    OccurrenceStatus,
)
from ..persistence.repository import OccurrenceQuery, OccurrenceRepository
from .carry_over import flatten_assignments, merge_checks
from .index import OccurrenceIndex


logger = logging.getLogger(__name__)


class CancelMode(Enum):
    """How a cancelled lesson's homework is disposed of."""
    MAKEUP_FIRST = "makeup-first"
    FORWARD_NEXT = "forward-next"


@dataclass
class PendingCancel:
    """
    Context held while the user picks a makeup slot.

    Attributes:
        occurrence_id: Lesson being cancelled
        project_id: Its project (makeup placement is scoped to it)
        homework_assignments: Assignments copied from the lesson
        makeup_duration: Length of the makeup lesson in minutes
        title: Title for the makeup lesson
    """

    occurrence_id: str
    project_id: str
    homework_assignments: List[HomeworkAssignment] = field(default_factory=list)
    makeup_duration: int = DEFAULT_DURATION
    title: str = ""


@dataclass
class CancellationOutcome:
    """
    Result of a finished cancellation.

    Attributes:
        cancelled_id: Lesson that is now cancelled
        mode: Branch that ran
        target_id: Makeup lesson (makeup-first) or next lesson (forward-next)
        transferred: Checks newly attached to the target
    """

    cancelled_id: str
    mode: CancelMode
    target_id: str
    transferred: List[HomeworkCheck] = field(default_factory=list)


def _carried_checks(assignments: List[HomeworkAssignment]) -> List[HomeworkCheck]:
    return flatten_assignments(assignments, note=CARRIED_FROM_CANCELLATION_NOTE)


class CancellationWorkflow:
    """
    Runs the two cancellation branches for one calendar session.

    At most one makeup placement is pending at a time; starting a new one
    replaces the previous context.

    Examples:
        >>> workflow = CancellationWorkflow(repo)
        >>> await workflow.begin_makeup(lesson)
        >>> outcome = await workflow.place_makeup(datetime(2024, 1, 3, 15, 0, tzinfo=tz))
        >>> outcome.target_id
        'occ_...'
    """

    def __init__(self, repository: OccurrenceRepository, default_duration: int = DEFAULT_DURATION):
        self.repository = repository
        self.default_duration = default_duration
        self.pending: Optional[PendingCancel] = None

    @property
    def in_makeup_mode(self) -> bool:
        return self.pending is not None

    async def _load_live(self, occurrence: Occurrence) -> Occurrence:
        current = await self.repository.get_occurrence(occurrence.id)
        if current.is_terminal:
            raise TerminalStateError(current.id)
        return current

    async def _makeup_duration(self, project_id: str) -> int:
        try:
            definition = await self.repository.get_schedule_definition(project_id)
        except ScheduleNotFoundError:
            return self.default_duration
        return definition.makeup_duration(self.default_duration)

    # ------------------------------------------------------------------
    # makeup-first
    # ------------------------------------------------------------------

    async def begin_makeup(self, occurrence: Occurrence) -> PendingCancel:
        """
        Enter makeup placement mode for a lesson.

        Nothing is written until ``place_makeup`` succeeds.

        Raises:
            TerminalStateError: If the lesson is already cancelled
        """
        current = await self._load_live(occurrence)
        if current.project_id is None:
            raise LessonEngineError(f"Occurrence {current.id} has no project to place a makeup in")

        if self.pending is not None:
            logger.info(f"Discarding pending makeup for {self.pending.occurrence_id}")

        self.pending = PendingCancel(
            occurrence_id=current.id,
            project_id=current.project_id,
            homework_assignments=list(current.homework_assignments),
            makeup_duration=await self._makeup_duration(current.project_id),
            title=current.title,
        )
        logger.info(f"Makeup placement started for {current.id}")
        return self.pending

    def abandon_makeup(self) -> Optional[PendingCancel]:
        """
        Leave makeup placement mode without changing anything.

        Returns:
            The discarded context, if there was one
        """
        discarded = self.pending
        self.pending = None
        if discarded is not None:
            logger.info(f"Makeup placement abandoned for {discarded.occurrence_id}")
        return discarded

    async def _existing_makeup(self, pending: PendingCancel) -> Optional[Occurrence]:
        lessons = await self.repository.query_occurrences(
            OccurrenceQuery(project_id=pending.project_id)
        )
        for lesson in lessons:
            if lesson.is_makeup and lesson.replaces_occurrence_id == pending.occurrence_id:
                return lesson
        return None

    async def place_makeup(self, start_time: datetime) -> CancellationOutcome:
        """
        Create the makeup lesson at ``start_time`` and cancel the original.

        If a makeup lesson for the pending lesson already exists (a retry
        after a failed cancel), it is reused and only missing checks are
        added. The pending context survives any failure so the user can
        retry.

        Raises:
            LessonEngineError: If no makeup placement is pending
            TerminalStateError: If the original got cancelled meanwhile
            PersistenceError: If the makeup lesson could not be saved
            PartialCancellationError: If the makeup exists but the cancel failed
        """
        pending = self.pending
        if pending is None:
            raise LessonEngineError("Makeup placement mode is not active")

        original = await self.repository.get_occurrence(pending.occurrence_id)
        if original.is_terminal:
            self.pending = None
            raise TerminalStateError(original.id)

        checks, _ = merge_checks([], _carried_checks(pending.homework_assignments))
        makeup = await self._existing_makeup(pending)
        if makeup is None:
            makeup = await self.repository.create_occurrence({
                "title": pending.title,
                "project_id": pending.project_id,
                "start_time": start_time,
                "duration": pending.makeup_duration,
                "status": OccurrenceStatus.SCHEDULED,
                "is_auto_generated": False,
                "is_makeup": True,
                "replaces_occurrence_id": pending.occurrence_id,
                "homework_checks": checks,
            })
            transferred = checks
            logger.info(f"Makeup lesson {makeup.id} created for {pending.occurrence_id}")
        else:
            merged, transferred = merge_checks(makeup.homework_checks, checks)
            if transferred:
                await self.repository.apply(
                    CarryOverCommand(occurrence_id=makeup.id, homework_checks=merged)
                )
            logger.info(f"Reusing makeup lesson {makeup.id} for {pending.occurrence_id}")

        try:
            await self.repository.apply(CancelWithMakeupCommand(
                occurrence_id=pending.occurrence_id,
                makeup_occurrence_id=makeup.id,
            ))
        except PersistenceError as e:
            logger.error(
                f"Makeup {makeup.id} created but cancelling {pending.occurrence_id} failed: {e}",
                exc_info=True
            )
            raise PartialCancellationError(
                f"Makeup lesson was created but {pending.occurrence_id} could not be cancelled",
                completed_step="makeup_created"
            ) from e

        self.pending = None
        logger.info(f"Lesson {pending.occurrence_id} cancelled with makeup {makeup.id}")
        return CancellationOutcome(
            cancelled_id=pending.occurrence_id,
            mode=CancelMode.MAKEUP_FIRST,
            target_id=makeup.id,
            transferred=transferred,
        )

    # ------------------------------------------------------------------
    # forward-next
    # ------------------------------------------------------------------

    async def find_next_lesson(self, occurrence: Occurrence) -> Optional[Occurrence]:
        """Earliest live lesson of the same project after ``occurrence``."""
        if occurrence.project_id is None or occurrence.start_time is None:
            return None

        later = await self.repository.query_occurrences(
            OccurrenceQuery(project_id=occurrence.project_id, after=occurrence.start_time)
        )
        index = OccurrenceIndex(later)
        return index.next(
            occurrence.project_id,
            occurrence.start_time,
            lambda o: o.id != occurrence.id and o.is_lesson and not o.is_terminal,
        )

    async def forward_to_next(self, occurrence: Occurrence) -> CancellationOutcome:
        """
        Append the lesson's homework to the next lesson, then cancel it.

        Raises:
            TerminalStateError: If the lesson is already cancelled
            NoEligibleOccurrenceError: If there is no later live lesson
                (nothing is written)
            PartialCancellationError: If the homework moved but the cancel failed
        """
        current = await self._load_live(occurrence)
        following = await self.find_next_lesson(current)
        if following is None:
            raise NoEligibleOccurrenceError(
                "There is no later lesson to move the homework to; "
                "add a makeup lesson instead"
            )

        merged, transferred = merge_checks(
            following.homework_checks,
            _carried_checks(current.homework_assignments),
        )
        if transferred:
            await self.repository.apply(
                CarryOverCommand(occurrence_id=following.id, homework_checks=merged)
            )

        try:
            await self.repository.apply(CancelForwardCommand(
                occurrence_id=current.id,
                next_occurrence_id=following.id,
            ))
        except PersistenceError as e:
            logger.error(
                f"Homework moved to {following.id} but cancelling {current.id} failed: {e}",
                exc_info=True
            )
            raise PartialCancellationError(
                f"Homework was moved but {current.id} could not be cancelled",
                completed_step="homework_forwarded"
            ) from e

        logger.info(
            f"Lesson {current.id} cancelled; {len(transferred)} homework items moved to {following.id}"
        )
        return CancellationOutcome(
            cancelled_id=current.id,
            mode=CancelMode.FORWARD_NEXT,
            target_id=following.id,
            transferred=transferred,
        )
