"""
Lesson engine facade.

The surrounding application talks to this class only. Every public
coroutine catches domain errors and returns a ``Result`` whose message can
be shown to the user as-is; the error itself is logged.
"""

import logging
from datetime import date, datetime, timedelta, tzinfo
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .models.commands import RescheduleCommand
from .models.errors import (
    CommandValidationError,
    HomeworkCheckNotFoundError,
    LessonEngineError,
    NoEligibleOccurrenceError,
    OccurrenceNotFoundError,
    PartialCancellationError,
    PersistenceError,
    TerminalStateError,
)
from .models.occurrence import HomeworkAssignment, HomeworkCheck, Occurrence
from .models.result import Result
from .models.schedule import ScheduleDefinition
from .persistence.repository import OccurrenceQuery, OccurrenceRepository
from .scheduling.cancellation import (
    CancellationOutcome,
    CancellationWorkflow,
    CancelMode,
    PendingCancel,
)
from .scheduling.carry_over import CarryOverOutcome, HomeworkCarryOver
from .scheduling.generator import GenerationReport, ScheduleGenerator
from .scheduling.homework import HomeworkEditor
from .scheduling.layout import LayoutSlot, layout_day
from .scheduling.timeutils import DateLike, start_of_day, to_local_date
from .scheduling.trigger import GenerationTrigger
from .utils.config import Config, config as default_config
from .utils.file_utils import save_csv
from .validation.schedule_validator import ScheduleDefinitionValidator


logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "The change could not be saved; please try again"
CANCEL_INCOMPLETE_MESSAGE = "Cancellation did not finish; please run it again"

EXPORT_COLUMNS = [
    "id", "project_id", "title", "start_time", "end_time", "duration", "status",
    "is_auto_generated", "is_makeup", "is_cancelled", "homework_checks_open",
    "homework_checks_done", "homework_assigned",
]


def _user_message(error: Exception) -> str:
    """Map a domain error to the message shown to the user."""
    if isinstance(error, NoEligibleOccurrenceError):
        return str(error)
    if isinstance(error, TerminalStateError):
        return "This lesson is already cancelled"
    if isinstance(error, PartialCancellationError):
        return CANCEL_INCOMPLETE_MESSAGE
    if isinstance(error, OccurrenceNotFoundError):
        return "This lesson no longer exists"
    if isinstance(error, HomeworkCheckNotFoundError):
        return "This homework item is not on the lesson"
    if isinstance(error, CommandValidationError):
        return "The change was rejected: " + "; ".join(error.errors)
    return SAVE_FAILED_MESSAGE


def _failure(action: str, error: Exception) -> Result:
    if isinstance(error, (NoEligibleOccurrenceError, TerminalStateError, HomeworkCheckNotFoundError)):
        logger.warning(f"{action}: {error}")
    else:
        logger.error(f"{action} failed: {error}", exc_info=True)
    return Result.failure(_user_message(error), error)


class LessonEngine:
    """
    Entry point for generation, carry-over, cancellation and layout.

    Settings not passed explicitly come from ``Config``.

    Examples:
        >>> engine = LessonEngine(InMemoryRepository(), tz=ZoneInfo("Asia/Seoul"))
        >>> result = await engine.ensure_schedule_in_range(definitions, date(2024, 1, 1), date(2024, 2, 1))
        >>> result.is_success
        True
    """

    def __init__(
        self,
        repository: OccurrenceRepository,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
        default_duration: Optional[int] = None,
        lookahead_weeks: Optional[int] = None,
        sync_weeks: Optional[int] = None,
        debounce_seconds: Optional[float] = None,
        settings: Optional[Config] = None
    ):
        settings = settings or default_config
        self.repository = repository
        self.tz = tz or settings.timezone
        self.clock = clock or (lambda: datetime.now(self.tz))
        self.default_duration = default_duration or settings.default_duration
        self.lookahead_weeks = (
            settings.lookahead_weeks if lookahead_weeks is None else lookahead_weeks
        )

        self.generator = ScheduleGenerator(
            repository,
            tz=self.tz,
            clock=self.clock,
            default_duration=self.default_duration,
            sync_weeks=sync_weeks or settings.sync_weeks,
        )
        self.carry_over = HomeworkCarryOver(repository)
        self.cancellation = CancellationWorkflow(repository, default_duration=self.default_duration)
        self.homework = HomeworkEditor(repository, clock=self.clock)
        self.schedule_validator = ScheduleDefinitionValidator()
        self.trigger = GenerationTrigger(
            self._run_lazy_generation,
            delay=settings.debounce_seconds if debounce_seconds is None else debounce_seconds,
        )

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------

    async def ensure_schedule_in_range(
        self,
        definitions: Optional[Sequence[ScheduleDefinition]],
        start: DateLike,
        end: DateLike
    ) -> Result[List[GenerationReport]]:
        """
        Create missing lessons of active student projects in [start, end).

        Args:
            definitions: Definitions to expand; None loads every stored one
            start: Window start
            end: Window end (exclusive)
        """
        try:
            if definitions is None:
                definitions = await self.repository.list_schedule_definitions()
        except PersistenceError as e:
            return _failure("Loading schedule definitions", e)
        return await self.generator.ensure_schedule_in_range(definitions, start, end)

    async def sync_project_schedule(self, definition: ScheduleDefinition) -> Result[GenerationReport]:
        """
        Save an edited schedule definition and reconcile its future lessons.

        Invalid definitions are rejected before anything is written.
        """
        validation = self.schedule_validator.validate(definition)
        if not validation.is_valid:
            logger.warning(f"Schedule for {definition.project_id} rejected: {validation.get_summary()}")
            return Result.failure("Schedule is invalid: " + "; ".join(validation.errors))
        for warning in validation.warnings:
            logger.warning(f"[{definition.project_id}] {warning}")

        try:
            await self.repository.save_schedule_definition(definition)
        except PersistenceError as e:
            return _failure(f"Saving schedule for {definition.project_id}", e)
        return await self.generator.sync_project_schedule(definition)

    async def _run_lazy_generation(self, start: DateLike, end: DateLike) -> Result[List[GenerationReport]]:
        result = await self.ensure_schedule_in_range(None, start, end)
        if result.is_failure:
            logger.error(f"Lazy generation failed: {result.message}")
        return result

    def on_visible_range_changed(self, start: DateLike, end: DateLike) -> bool:
        """
        Request lazy generation for a newly visible calendar window.

        The window end is extended by the lookahead margin. Bursts of calls
        collapse into one run; calls during a run are dropped.

        Returns:
            False if the request was dropped
        """
        end_date = to_local_date(end, self.tz) + timedelta(weeks=self.lookahead_weeks)
        return self.trigger.request(to_local_date(start, self.tz), end_date)

    # ------------------------------------------------------------------
    # carry-over and homework
    # ------------------------------------------------------------------

    async def on_occurrence_loaded(self, occurrence: Occurrence) -> Result[CarryOverOutcome]:
        """Carry the previous lesson's homework into a lesson being opened."""
        try:
            outcome = await self.carry_over.on_occurrence_loaded(occurrence)
        except LessonEngineError as e:
            return _failure(f"Carry-over into {occurrence.id}", e)
        return Result.success(outcome, f"{len(outcome.added)} homework items carried over")

    async def toggle_homework_check(
        self,
        occurrence: Occurrence,
        textbook_id: str,
        chapter: str,
        completed: bool
    ) -> Result[HomeworkCheck]:
        try:
            check = await self.homework.toggle_check(occurrence.id, textbook_id, chapter, completed)
        except LessonEngineError as e:
            return _failure(f"Toggling homework on {occurrence.id}", e)
        return Result.success(check)

    async def set_homework_assignments(
        self,
        occurrence: Occurrence,
        assignments: List[HomeworkAssignment]
    ) -> Result[List[HomeworkAssignment]]:
        try:
            saved = await self.homework.set_assignments(occurrence.id, assignments)
        except LessonEngineError as e:
            return _failure(f"Assigning homework on {occurrence.id}", e)
        return Result.success(saved)

    async def purge_textbook(self, project_id: str, textbook_id: str) -> Result[int]:
        try:
            changed = await self.homework.purge_textbook(project_id, textbook_id)
        except LessonEngineError as e:
            return _failure(f"Removing textbook {textbook_id}", e)
        return Result.success(changed, f"{changed} lessons updated")

    # ------------------------------------------------------------------
    # user edits and cancellation
    # ------------------------------------------------------------------

    async def reschedule_occurrence(
        self,
        occurrence: Occurrence,
        start_time: datetime,
        duration: Optional[int] = None
    ) -> Result[Occurrence]:
        """
        Move or resize a lesson by hand.

        The lesson is marked manually modified so template edits leave it
        where the user put it.
        """
        try:
            current = await self.repository.get_occurrence(occurrence.id)
            if current.is_terminal:
                raise TerminalStateError(current.id)
            await self.repository.apply(RescheduleCommand(
                occurrence_id=current.id,
                start_time=start_time,
                duration=duration or current.duration,
                manual=True,
            ))
            moved = await self.repository.get_occurrence(current.id)
        except LessonEngineError as e:
            return _failure(f"Rescheduling {occurrence.id}", e)
        return Result.success(moved)

    async def cancel_lesson(
        self,
        occurrence: Occurrence,
        mode: Union[CancelMode, str]
    ) -> Result[Union[CancellationOutcome, PendingCancel]]:
        """
        Start or run the cancellation of a lesson.

        ``forward-next`` completes immediately. ``makeup-first`` enters
        makeup placement mode and returns the pending context; finish it
        with ``place_makeup`` or drop it with ``abandon_makeup``.
        """
        try:
            mode = CancelMode(mode)
        except ValueError as e:
            return Result.failure(f"Unknown cancellation mode: {mode}", e)

        try:
            if mode == CancelMode.FORWARD_NEXT:
                outcome = await self.cancellation.forward_to_next(occurrence)
                return Result.success(
                    outcome, "Lesson cancelled; homework moved to the next lesson"
                )
            pending = await self.cancellation.begin_makeup(occurrence)
        except LessonEngineError as e:
            return _failure(f"Cancelling {occurrence.id}", e)
        return Result.success(pending, "Pick a slot for the makeup lesson")

    async def place_makeup(self, start_time: datetime) -> Result[CancellationOutcome]:
        """Create the makeup lesson at the chosen slot and finish the cancellation."""
        try:
            outcome = await self.cancellation.place_makeup(start_time)
        except LessonEngineError as e:
            return _failure("Placing makeup lesson", e)
        return Result.success(outcome, "Makeup lesson added; original lesson cancelled")

    def abandon_makeup(self) -> Optional[PendingCancel]:
        return self.cancellation.abandon_makeup()

    @property
    def in_makeup_mode(self) -> bool:
        return self.cancellation.in_makeup_mode

    # ------------------------------------------------------------------
    # display and export
    # ------------------------------------------------------------------

    def layout_day(self, occurrences: Iterable[Occurrence]) -> Dict[str, LayoutSlot]:
        return layout_day(occurrences)

    async def occurrences_on(self, day: date) -> List[Occurrence]:
        """Occurrences starting on a local calendar day."""
        start = start_of_day(day, self.tz)
        return await self.repository.query_occurrences(
            OccurrenceQuery(after=start, before=start_of_day(day + timedelta(days=1), self.tz))
        )

    async def export_schedule(self, start: DateLike, end: DateLike, path: Path) -> Result[Path]:
        """
        Write the occurrences starting in [start, end) to a CSV file.

        Homework is summarised as counts per occurrence.
        """
        try:
            occurrences = await self.repository.query_occurrences(OccurrenceQuery(
                after=start_of_day(to_local_date(start, self.tz), self.tz),
                before=start_of_day(to_local_date(end, self.tz), self.tz),
            ))
        except PersistenceError as e:
            return _failure("Loading lessons for export", e)

        rows = []
        for o in occurrences:
            rows.append({
                "id": o.id,
                "project_id": o.project_id,
                "title": o.title,
                "start_time": o.start_time.astimezone(self.tz).isoformat(),
                "end_time": o.end_time.astimezone(self.tz).isoformat(),
                "duration": o.duration,
                "status": o.status.value,
                "is_auto_generated": o.is_auto_generated,
                "is_makeup": o.is_makeup,
                "is_cancelled": o.is_terminal,
                "homework_checks_open": sum(1 for c in o.homework_checks if not c.is_completed),
                "homework_checks_done": sum(1 for c in o.homework_checks if c.is_completed),
                "homework_assigned": sum(len(a.chapters) for a in o.homework_assignments),
            })
        df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)

        path = Path(path)
        if not save_csv(df, path):
            return Result.failure(f"Could not write {path}")
        logger.info(f"Exported {len(df)} occurrences to {path}")
        return Result.success(path, f"Exported {len(df)} occurrences")
