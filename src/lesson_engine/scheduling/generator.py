"""
Recurring schedule generator.

Expands a student's weekly template into concrete lessons and keeps the
future part of the calendar in line with the template after it is edited.

Generation is idempotent: a lesson is identified by (project, template
slot, date), and a date/slot pair that already has a lesson (at the slot's
start time, or recorded as generated for that slot even if the user moved
it since) is never filled a second time. A lesson whose slot has left the
template still holds one slot of its date.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models.commands import RescheduleCommand
from ..models.errors import PersistenceError
from ..models.occurrence import DEFAULT_DURATION, Occurrence, OccurrenceStatus
from ..models.result import Result
from ..models.schedule import ScheduleDefinition, TemplateSlot
from ..persistence.repository import OccurrenceQuery, OccurrenceRepository
from .timeutils import DateLike, iter_dates, slot_start, sunday_based_weekday, to_local_date


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedLesson:
    """A (slot, date) combination the template asks for."""

    slot: TemplateSlot
    day: date
    start_time: datetime

    @property
    def slot_key(self) -> Tuple[date, str]:
        return (self.day, self.slot.time)


@dataclass
class GenerationReport:
    """
    Outcome of one generation or reconciliation run for one project.

    Attributes:
        project_id: Project the run was for
        created: Lessons created
        updated: Lessons moved/resized in place
        deleted: Lessons removed because their slot disappeared
        skipped: Planned lessons that already existed
        error: Persistence error that aborted the run, if any
    """

    project_id: str
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    error: Optional[Exception] = None
    created_ids: List[str] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.error is not None

    def summary(self) -> str:
        return (
            f"{self.project_id}: created={self.created} updated={self.updated} "
            f"deleted={self.deleted} skipped={self.skipped}"
            + (" (aborted)" if self.aborted else "")
        )


def plan_lessons(
    definition: ScheduleDefinition,
    start: date,
    end: date,
    tz: tzinfo
) -> List[PlannedLesson]:
    """
    Expand a template over the dates in [start, end).

    Dates outside the definition's [start_date, end_date] are skipped, and
    duplicate template slots collapse into one lesson.

    Args:
        definition: Schedule definition to expand
        start: First date (inclusive)
        end: Last date (exclusive)
        tz: Zone in which slot times are interpreted

    Returns:
        Planned lessons ordered by start time
    """
    planned: Dict[datetime, PlannedLesson] = {}
    for day in iter_dates(start, end):
        if not definition.covers(day):
            continue
        weekday = sunday_based_weekday(day)
        for slot in definition.schedule_template:
            if slot.day != weekday:
                continue
            start_time = slot_start(day, slot, tz)
            planned.setdefault(start_time, PlannedLesson(slot=slot, day=day, start_time=start_time))
    return [planned[key] for key in sorted(planned)]


def slots_on(definition: ScheduleDefinition, day: date) -> Dict[str, TemplateSlot]:
    """Template slots falling on ``day``, keyed by time and ordered by time."""
    slots: Dict[str, TemplateSlot] = {}
    if not definition.covers(day):
        return slots
    weekday = sunday_based_weekday(day)
    for slot in sorted(definition.schedule_template, key=lambda s: s.hour_minute):
        if slot.day == weekday:
            slots.setdefault(slot.time, slot)
    return slots


def claim_slot_times(slot_times: Sequence[str], lessons: Iterable[Occurrence]) -> Set[str]:
    """
    Work out which of one day's slot times are already held by lessons.

    A lesson generated for a slot that is still in the template holds that
    slot. A lesson whose slot has since left the template (the template time
    was edited after the user moved the lesson, say) still stands for that
    date and takes the earliest slot nobody holds.

    Args:
        slot_times: The day's template slot times, earliest first
        lessons: Lessons generated for that day (``slot_date`` equal to it)

    Returns:
        Slot times that must not get another lesson
    """
    wanted = list(dict.fromkeys(slot_times))
    claimed: Set[str] = set()
    stale: List[Occurrence] = []
    for lesson in sorted(lessons, key=lambda o: o.slot_time or ""):
        if lesson.slot_time is None:
            continue
        if lesson.slot_time in wanted:
            claimed.add(lesson.slot_time)
        else:
            stale.append(lesson)

    free = [t for t in wanted if t not in claimed]
    claimed.update(free[:len(stale)])
    return claimed


class ScheduleGenerator:
    """
    Creates and reconciles auto-generated lessons.

    Runs for the same project are serialised so two overlapping requests
    never race to create the same lesson.

    Examples:
        >>> generator = ScheduleGenerator(repo, tz=ZoneInfo("Asia/Seoul"))
        >>> report = await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 2, 1))
        >>> report.created
        9
    """

    def __init__(
        self,
        repository: OccurrenceRepository,
        tz: tzinfo,
        clock: Optional[Callable[[], datetime]] = None,
        default_duration: int = DEFAULT_DURATION,
        sync_weeks: int = 8
    ):
        self.repository = repository
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(tz))
        self.default_duration = default_duration
        self.sync_weeks = sync_weeks
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, project_id: str) -> asyncio.Lock:
        if project_id not in self._locks:
            self._locks[project_id] = asyncio.Lock()
        return self._locks[project_id]

    def _new_lesson_fields(self, definition: ScheduleDefinition, planned: PlannedLesson) -> dict:
        return {
            "title": definition.name,
            "project_id": definition.project_id,
            "start_time": planned.start_time,
            "duration": planned.slot.duration or self.default_duration,
            "status": OccurrenceStatus.SCHEDULED,
            "is_auto_generated": True,
            "is_makeup": False,
            "slot_date": planned.day,
            "slot_time": planned.slot.time,
        }

    def _lesson_day(self, occurrence: Occurrence) -> date:
        return occurrence.slot_date or to_local_date(occurrence.start_time, self.tz)

    def _claimed_slots(
        self,
        plan: Sequence[PlannedLesson],
        existing: Iterable[Occurrence]
    ) -> Set[Tuple[date, str]]:
        generated: Dict[date, List[Occurrence]] = {}
        for o in existing:
            if o.is_auto_generated and o.slot_date is not None:
                generated.setdefault(o.slot_date, []).append(o)

        times_by_day: Dict[date, List[str]] = {}
        for lesson in plan:
            times_by_day.setdefault(lesson.day, []).append(lesson.slot.time)

        claimed: Set[Tuple[date, str]] = set()
        for day, times in times_by_day.items():
            for time in claim_slot_times(times, generated.get(day, [])):
                claimed.add((day, time))
        return claimed

    async def generate_in_range(
        self,
        definition: ScheduleDefinition,
        start: DateLike,
        end: DateLike,
        not_before: Optional[datetime] = None
    ) -> GenerationReport:
        """
        Create the missing lessons of ``definition`` in [start, end).

        A persistence error stops the run; lessons already created stay and
        the next run fills in the rest.

        Args:
            definition: Schedule definition to expand
            start: Window start (date, or datetime converted to a local date)
            end: Window end, exclusive
            not_before: Skip planned lessons starting before this instant

        Returns:
            GenerationReport (``error`` set when the run was aborted)
        """
        report = GenerationReport(project_id=definition.project_id)
        if not definition.schedule_template:
            return report

        start_date = to_local_date(start, self.tz)
        end_date = to_local_date(end, self.tz)
        plan = plan_lessons(definition, start_date, end_date, self.tz)
        planned = plan
        if not_before is not None:
            planned = [p for p in plan if p.start_time >= not_before]
        if not planned:
            return report

        async with self._lock_for(definition.project_id):
            try:
                existing = await self.repository.query_occurrences(
                    OccurrenceQuery(project_id=definition.project_id)
                )
                existing_starts: Set[float] = {
                    o.start_time.timestamp() for o in existing if o.start_time is not None
                }
                existing_slots = self._claimed_slots(plan, existing)

                for lesson in planned:
                    if (lesson.start_time.timestamp() in existing_starts
                            or lesson.slot_key in existing_slots):
                        report.skipped += 1
                        continue

                    created = await self.repository.create_occurrence(
                        self._new_lesson_fields(definition, lesson)
                    )
                    existing_starts.add(lesson.start_time.timestamp())
                    existing_slots.add(lesson.slot_key)
                    report.created += 1
                    report.created_ids.append(created.id)

            except PersistenceError as e:
                report.error = e
                logger.error(
                    f"Generation aborted for {definition.project_id} "
                    f"after {report.created} lessons: {e}",
                    exc_info=True
                )
                return report

        if report.created:
            logger.info(
                f"[{definition.name or definition.project_id}] created {report.created} lessons "
                f"({start_date.isoformat()} ~ {end_date.isoformat()})"
            )
        return report

    async def ensure_schedule_in_range(
        self,
        definitions: Sequence[ScheduleDefinition],
        start: DateLike,
        end: DateLike
    ) -> Result[List[GenerationReport]]:
        """
        Make sure every active student project has its lessons in [start, end).

        Past dates are never filled. Safe to call redundantly.

        Returns:
            Result with one report per project, or a failure when a
            persistence error aborted the run
        """
        now = self.clock()
        today = to_local_date(now, self.tz)
        start_date = max(to_local_date(start, self.tz), today)
        end_date = to_local_date(end, self.tz)

        reports: List[GenerationReport] = []
        schedulable = [d for d in definitions if d.is_schedulable]
        logger.debug(
            f"Checking {len(schedulable)} schedules: "
            f"{start_date.isoformat()} ~ {end_date.isoformat()}"
        )

        for definition in schedulable:
            report = await self.generate_in_range(definition, start_date, end_date, not_before=now)
            reports.append(report)
            if report.aborted:
                return Result.failure(
                    f"Lesson generation stopped at {definition.name or definition.project_id}; "
                    f"it will resume on the next calendar refresh",
                    report.error
                )

        created = sum(r.created for r in reports)
        return Result.success(reports, f"Created {created} lessons")

    def _is_reconcilable(self, occurrence: Occurrence, now: datetime) -> bool:
        return (
            occurrence.start_time is not None
            and occurrence.start_time > now
            and occurrence.is_auto_generated
            and not occurrence.is_makeup
            and not occurrence.is_terminal
            and not occurrence.is_manually_modified
            and occurrence.status != OccurrenceStatus.COMPLETED
        )

    async def sync_project_schedule(self, definition: ScheduleDefinition) -> Result[GenerationReport]:
        """
        Bring future regular lessons in line with an edited template.

        Future, auto-generated, non-makeup, non-cancelled, non-completed
        lessons the user has not moved are matched to the new template
        day by day, slot by slot: a lesson whose slot is still in the
        template keeps it (taking the slot's new duration), a lesson whose
        slot is gone moves to a free slot of that day or is deleted, and
        missing ones are generated for the next ``sync_weeks`` weeks. Past
        and protected lessons are never touched, and the slots they hold
        stay held.

        Returns:
            Result with the reconciliation report
        """
        now = self.clock()
        report = GenerationReport(project_id=definition.project_id)
        logger.info(f"[{definition.name or definition.project_id}] schedule sync started")

        async with self._lock_for(definition.project_id):
            try:
                lessons = await self.repository.query_occurrences(
                    OccurrenceQuery(project_id=definition.project_id)
                )

                by_day: Dict[date, List[Occurrence]] = {}
                held_by_day: Dict[date, List[Occurrence]] = {}
                for occurrence in lessons:
                    if occurrence.start_time is None:
                        continue
                    if self._is_reconcilable(occurrence, now):
                        by_day.setdefault(self._lesson_day(occurrence), []).append(occurrence)
                    elif occurrence.is_auto_generated and occurrence.slot_date is not None:
                        held_by_day.setdefault(occurrence.slot_date, []).append(occurrence)

                for day in sorted(by_day):
                    await self._reconcile_day(
                        definition, day, by_day[day], held_by_day.get(day, []), now, report
                    )

            except PersistenceError as e:
                report.error = e
                logger.error(f"Schedule sync failed for {definition.project_id}: {e}", exc_info=True)
                return Result.failure("Schedule update could not be saved; please try again", e)

        start_date = to_local_date(now, self.tz)
        if definition.start_date and definition.start_date > start_date:
            start_date = definition.start_date
        end_date = start_date + timedelta(weeks=self.sync_weeks)

        generated = await self.generate_in_range(definition, start_date, end_date, not_before=now)
        report.created = generated.created
        report.skipped = generated.skipped
        report.created_ids = generated.created_ids
        if generated.aborted:
            report.error = generated.error
            return Result.failure(
                "Schedule updated, but some lessons could not be created yet", generated.error
            )

        logger.info(f"Schedule sync finished: {report.summary()}")
        return Result.success(report, report.summary())

    async def _reconcile_day(
        self,
        definition: ScheduleDefinition,
        day: date,
        lessons: List[Occurrence],
        held: List[Occurrence],
        now: datetime,
        report: GenerationReport
    ):
        slots = slots_on(definition, day)
        taken = {h.slot_time for h in held if h.slot_time in slots}

        assigned: List[Tuple[Occurrence, Optional[TemplateSlot]]] = []
        unmatched: List[Occurrence] = []
        for lesson in sorted(lessons, key=lambda o: o.start_time):
            if lesson.slot_time in slots and lesson.slot_time not in taken:
                taken.add(lesson.slot_time)
                assigned.append((lesson, slots[lesson.slot_time]))
            else:
                unmatched.append(lesson)

        # protected lessons whose slot left the template keep the earliest free slots
        kept = [lesson for lesson, _ in assigned]
        claimed = claim_slot_times(list(slots), held + kept)
        free = [slot for time, slot in slots.items() if time not in claimed]
        for lesson in unmatched:
            assigned.append((lesson, free.pop(0) if free else None))

        for lesson, slot in assigned:
            new_start = slot_start(day, slot, self.tz) if slot else None

            if slot is None or new_start <= now:
                await self.repository.delete_occurrence(lesson.id)
                report.deleted += 1
                continue

            duration = slot.duration or self.default_duration
            if (lesson.start_time == new_start
                    and lesson.duration == duration
                    and lesson.slot_time == slot.time):
                continue

            await self.repository.apply(RescheduleCommand(
                occurrence_id=lesson.id,
                start_time=new_start,
                duration=duration,
                slot_time=slot.time,
            ))
            report.updated += 1
