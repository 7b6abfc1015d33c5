"""
Tests for recurring lesson generation and template reconciliation.
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from lesson_engine.models.errors import PersistenceError
from lesson_engine.models.occurrence import Occurrence, OccurrenceStatus
from lesson_engine.models.schedule import ScheduleDefinition, TemplateSlot
from lesson_engine.persistence.repository import OccurrenceQuery
from lesson_engine.scheduling.generator import ScheduleGenerator, claim_slot_times, plan_lessons

from tests.helpers import KST, check, kst


def starts(occurrences):
    return [o.start_time for o in occurrences]


class TestPlanLessons:
    """Test cases for plan_lessons."""

    def test_expands_weekly_template(self, definition):
        planned = plan_lessons(definition, date(2024, 1, 1), date(2024, 1, 15), KST)

        assert [p.start_time for p in planned] == [
            kst(2024, 1, 1, 16), kst(2024, 1, 3, 17),
            kst(2024, 1, 8, 16), kst(2024, 1, 10, 17),
        ]
        assert planned[0].slot.duration == 50

    def test_sunday_is_day_zero(self):
        definition = ScheduleDefinition(
            project_id="p", schedule_template=[TemplateSlot(day=0, time="10:00")]
        )

        planned = plan_lessons(definition, date(2024, 1, 1), date(2024, 1, 8), KST)

        assert [p.day for p in planned] == [date(2024, 1, 7)]

    def test_duplicate_slots_collapse(self, definition):
        definition.schedule_template.append(TemplateSlot(day=1, time="16:00", duration=50))

        planned = plan_lessons(definition, date(2024, 1, 1), date(2024, 1, 2), KST)

        assert len(planned) == 1

    def test_respects_definition_dates(self, definition):
        definition.start_date = date(2024, 1, 3)
        definition.end_date = date(2024, 1, 8)

        planned = plan_lessons(definition, date(2024, 1, 1), date(2024, 1, 15), KST)

        assert [p.day for p in planned] == [date(2024, 1, 3), date(2024, 1, 8)]


class TestGenerateInRange:
    """Test cases for ScheduleGenerator.generate_in_range."""

    @pytest.fixture
    def generator(self, repo, clock):
        return ScheduleGenerator(repo, tz=KST, clock=clock)

    @pytest.mark.asyncio
    async def test_creates_regular_lessons(self, generator, repo, definition):
        report = await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 1, 15))

        lessons = repo.all_occurrences()
        assert report.created == 4
        assert len(report.created_ids) == 4
        assert all(o.is_auto_generated and not o.is_makeup for o in lessons)
        assert all(o.title == "Kim" for o in lessons)
        assert [o.duration for o in lessons] == [50, 40, 50, 40]
        assert lessons[0].slot_date == date(2024, 1, 1)
        assert lessons[0].slot_time == "16:00"

    @pytest.mark.asyncio
    async def test_idempotent_over_same_window(self, generator, repo, definition):
        await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 1, 15))
        first = starts(repo.all_occurrences())

        report = await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 1, 15))

        assert report.created == 0
        assert report.skipped == 4
        assert starts(repo.all_occurrences()) == first

    @pytest.mark.asyncio
    async def test_overlapping_windows_no_duplicates(self, generator, repo, definition):
        await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 1, 10))
        await generator.generate_in_range(definition, date(2024, 1, 5), date(2024, 1, 15))

        assert len(repo.all_occurrences()) == 4

    @pytest.mark.asyncio
    async def test_moved_lesson_still_occupies_its_slot(self, generator, repo, definition, make_lesson):
        make_lesson(
            "occ_moved", kst(2024, 1, 8, 18),
            slot_date=date(2024, 1, 8), slot_time="16:00", is_manually_modified=True,
        )

        await generator.generate_in_range(definition, date(2024, 1, 8), date(2024, 1, 9))

        assert [o.id for o in repo.all_occurrences()] == ["occ_moved"]

    @pytest.mark.asyncio
    async def test_existing_lesson_at_slot_time_is_kept(self, generator, repo, definition, make_lesson):
        make_lesson("occ_manual", kst(2024, 1, 8, 16), is_auto_generated=False, is_makeup=True)

        report = await generator.generate_in_range(definition, date(2024, 1, 8), date(2024, 1, 9))

        assert report.created == 0
        assert len(repo.all_occurrences()) == 1

    @pytest.mark.asyncio
    async def test_persistence_error_aborts_and_resumes(self, generator, repo, definition):
        real_create = repo.create_occurrence
        calls = []

        async def flaky_create(fields):
            calls.append(fields)
            if len(calls) == 2:
                raise PersistenceError("connection reset")
            return await real_create(fields)

        with patch.object(repo, "create_occurrence", AsyncMock(side_effect=flaky_create)):
            report = await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 1, 15))

        assert report.aborted
        assert report.created == 1
        assert len(repo.all_occurrences()) == 1

        retry = await generator.generate_in_range(definition, date(2024, 1, 1), date(2024, 1, 15))

        assert retry.created == 3
        assert len(repo.all_occurrences()) == 4


class TestEnsureScheduleInRange:
    """Test cases for ScheduleGenerator.ensure_schedule_in_range."""

    @pytest.fixture
    def generator(self, repo, clock):
        clock.now = kst(2024, 1, 5, 12)
        return ScheduleGenerator(repo, tz=KST, clock=clock)

    @pytest.mark.asyncio
    async def test_never_fills_the_past(self, generator, repo, definition):
        result = await generator.ensure_schedule_in_range([definition], date(2024, 1, 1), date(2024, 1, 15))

        assert result.is_success
        assert starts(repo.all_occurrences()) == [kst(2024, 1, 8, 16), kst(2024, 1, 10, 17)]

    @pytest.mark.asyncio
    async def test_skips_inactive_and_non_student(self, generator, repo, definition):
        paused = ScheduleDefinition(
            project_id="student_lee", schedule_template=list(definition.schedule_template), status="paused"
        )
        work = ScheduleDefinition(
            project_id="office", schedule_template=list(definition.schedule_template), type="work"
        )

        result = await generator.ensure_schedule_in_range(
            [definition, paused, work], date(2024, 1, 1), date(2024, 1, 15)
        )

        assert [r.project_id for r in result.value] == ["student_kim"]
        assert {o.project_id for o in repo.all_occurrences()} == {"student_kim"}

    @pytest.mark.asyncio
    async def test_failure_is_reported(self, generator, repo, definition):
        with patch.object(repo, "create_occurrence", AsyncMock(side_effect=PersistenceError("down"))):
            result = await generator.ensure_schedule_in_range([definition], date(2024, 1, 1), date(2024, 1, 15))

        assert result.is_failure
        assert isinstance(result.error, PersistenceError)


class TestSyncProjectSchedule:
    """Test cases for ScheduleGenerator.sync_project_schedule."""

    @pytest.fixture
    def generator(self, repo, clock):
        clock.now = kst(2024, 1, 5, 12)
        return ScheduleGenerator(repo, tz=KST, clock=clock, sync_weeks=8)

    @pytest.fixture
    def history(self, make_lesson):
        """One past lesson, two future regular lessons and protected ones."""
        return {
            "past": make_lesson("occ_past", kst(2024, 1, 1, 16),
                                slot_date=date(2024, 1, 1), slot_time="16:00"),
            "monday": make_lesson("occ_mon", kst(2024, 1, 8, 16),
                                  slot_date=date(2024, 1, 8), slot_time="16:00"),
            "wednesday": make_lesson("occ_wed", kst(2024, 1, 10, 17), duration=40,
                                     slot_date=date(2024, 1, 10), slot_time="17:00"),
            "moved": make_lesson("occ_moved", kst(2024, 1, 15, 18),
                                 slot_date=date(2024, 1, 15), slot_time="16:00",
                                 is_manually_modified=True),
            "makeup": make_lesson("occ_makeup", kst(2024, 1, 11, 15),
                                  is_auto_generated=False, is_makeup=True),
            "cancelled": make_lesson("occ_cancelled", kst(2024, 1, 17, 17), cancelled=True,
                                     slot_date=date(2024, 1, 17), slot_time="17:00"),
        }

    @pytest.fixture
    def edited(self, definition):
        """Monday moves to 15:00 for an hour; Wednesday is dropped."""
        definition.schedule_template = [TemplateSlot(day=1, time="15:00", duration=60)]
        return definition

    @pytest.mark.asyncio
    async def test_updates_in_place_and_deletes_removed_slots(self, generator, repo, history, edited):
        result = await generator.sync_project_schedule(edited)

        assert result.is_success
        report = result.value
        assert report.updated == 1
        assert report.deleted == 1

        monday = await repo.get_occurrence("occ_mon")
        assert monday.start_time == kst(2024, 1, 8, 15)
        assert monday.duration == 60
        assert monday.slot_time == "15:00"
        assert not monday.is_manually_modified

        remaining = {o.id for o in repo.all_occurrences()}
        assert "occ_wed" not in remaining

    @pytest.mark.asyncio
    async def test_preserves_past_and_protected_lessons(self, generator, repo, history, edited):
        await generator.sync_project_schedule(edited)

        for key in ("past", "moved", "makeup", "cancelled"):
            before = history[key]
            after = await repo.get_occurrence(before.id)
            assert after.start_time == before.start_time
            assert after.duration == before.duration
            assert after.status == before.status

    @pytest.mark.asyncio
    async def test_generates_missing_weeks(self, generator, repo, history, edited):
        result = await generator.sync_project_schedule(edited)

        # Mondays from Jan 8 through Feb 26; Jan 8 and the moved Jan 15 lesson already existed
        assert result.value.created == 6
        mondays = await repo.query_occurrences(OccurrenceQuery(
            project_id="student_kim", after=kst(2024, 1, 22), before=kst(2024, 3, 1)
        ))
        assert all(o.start_time.hour == 15 and o.duration == 60 for o in mondays)
        assert len(mondays) == 6

    @pytest.mark.asyncio
    async def test_moved_lesson_keeps_its_date_after_time_change(self, generator, repo, history, edited):
        await generator.sync_project_schedule(edited)

        day = await repo.query_occurrences(OccurrenceQuery(
            project_id="student_kim", after=kst(2024, 1, 15), before=kst(2024, 1, 16)
        ))

        assert [o.id for o in day] == ["occ_moved"]
        assert day[0].start_time == kst(2024, 1, 15, 18)

    @pytest.mark.asyncio
    async def test_completed_future_lesson_untouched(self, generator, repo, make_lesson, edited):
        make_lesson("occ_done", kst(2024, 1, 8, 16), status=OccurrenceStatus.COMPLETED)

        await generator.sync_project_schedule(edited)

        done = await repo.get_occurrence("occ_done")
        assert done.start_time == kst(2024, 1, 8, 16)
        assert done.status == OccurrenceStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_empty_template_removes_future_regular_lessons(self, generator, repo, history, definition):
        definition.schedule_template = []

        result = await generator.sync_project_schedule(definition)

        assert result.is_success
        remaining = {o.id for o in repo.all_occurrences()}
        assert remaining == {"occ_past", "occ_moved", "occ_makeup", "occ_cancelled"}

    @pytest.mark.asyncio
    async def test_save_failure_is_reported(self, generator, repo, history, edited):
        with patch.object(repo, "apply", AsyncMock(side_effect=PersistenceError("locked"))):
            result = await generator.sync_project_schedule(edited)

        assert result.is_failure
        assert (await repo.get_occurrence("occ_past")).start_time == kst(2024, 1, 1, 16)


class TestSyncSameDaySlots:
    """Test cases for reconciling days with more than one template slot."""

    @pytest.fixture
    def generator(self, repo, clock):
        clock.now = kst(2024, 1, 5, 12)
        return ScheduleGenerator(repo, tz=KST, clock=clock, sync_weeks=1)

    @pytest.fixture
    def two_a_day(self):
        return ScheduleDefinition(
            project_id="student_kim",
            name="Kim",
            schedule_template=[
                TemplateSlot(day=1, time="10:00", duration=50),
                TemplateSlot(day=1, time="14:00", duration=50),
            ],
            start_date=date(2024, 1, 1),
        )

    @pytest.fixture
    def monday(self, make_lesson):
        return (
            make_lesson("occ_ten", kst(2024, 1, 8, 10), checks=[check("T1", "1")],
                        slot_date=date(2024, 1, 8), slot_time="10:00"),
            make_lesson("occ_two", kst(2024, 1, 8, 14), checks=[check("T2", "4")],
                        slot_date=date(2024, 1, 8), slot_time="14:00"),
        )

    async def lessons_on_jan8(self, repo):
        day = await repo.query_occurrences(OccurrenceQuery(
            project_id="student_kim", after=kst(2024, 1, 8), before=kst(2024, 1, 9)
        ))
        return [(o.id, o.start_time.hour, o.slot_time, o.is_cancelled) for o in day]

    @pytest.mark.asyncio
    async def test_removed_slot_deletes_its_own_lesson(self, generator, repo, monday, two_a_day):
        two_a_day.schedule_template = [TemplateSlot(day=1, time="14:00", duration=50)]

        result = await generator.sync_project_schedule(two_a_day)

        assert result.value.deleted == 1
        assert result.value.updated == 0
        assert await self.lessons_on_jan8(repo) == [("occ_two", 14, "14:00", False)]
        kept = await repo.get_occurrence("occ_two")
        assert [(c.textbook_id, c.chapter) for c in kept.homework_checks] == [("T2", "4")]

    @pytest.mark.asyncio
    async def test_changed_slot_moves_only_its_lesson(self, generator, repo, monday, two_a_day):
        two_a_day.schedule_template = [
            TemplateSlot(day=1, time="11:00", duration=50),
            TemplateSlot(day=1, time="14:00", duration=50),
        ]

        result = await generator.sync_project_schedule(two_a_day)

        assert result.value.updated == 1
        assert result.value.created == 0
        assert await self.lessons_on_jan8(repo) == [
            ("occ_ten", 11, "11:00", False), ("occ_two", 14, "14:00", False),
        ]

    @pytest.mark.asyncio
    async def test_both_slots_replaced_by_one(self, generator, repo, monday, two_a_day):
        two_a_day.schedule_template = [TemplateSlot(day=1, time="12:00", duration=50)]

        result = await generator.sync_project_schedule(two_a_day)

        assert (result.value.updated, result.value.deleted) == (1, 1)
        assert await self.lessons_on_jan8(repo) == [("occ_ten", 12, "12:00", False)]

    @pytest.mark.asyncio
    async def test_cancelled_sibling_keeps_its_slot(self, generator, repo, make_lesson, two_a_day):
        make_lesson("occ_ten", kst(2024, 1, 8, 10), cancelled=True,
                    slot_date=date(2024, 1, 8), slot_time="10:00")
        make_lesson("occ_two", kst(2024, 1, 8, 14),
                    slot_date=date(2024, 1, 8), slot_time="14:00")

        result = await generator.sync_project_schedule(two_a_day)

        report = result.value
        assert (report.updated, report.deleted, report.created) == (0, 0, 0)
        assert await self.lessons_on_jan8(repo) == [
            ("occ_ten", 10, "10:00", True), ("occ_two", 14, "14:00", False),
        ]

    @pytest.mark.asyncio
    async def test_moved_sibling_holds_its_slot(self, generator, repo, make_lesson, two_a_day):
        make_lesson("occ_ten", kst(2024, 1, 8, 9), is_manually_modified=True,
                    slot_date=date(2024, 1, 8), slot_time="10:00")
        make_lesson("occ_two", kst(2024, 1, 8, 14),
                    slot_date=date(2024, 1, 8), slot_time="14:00")

        result = await generator.sync_project_schedule(two_a_day)

        report = result.value
        assert (report.updated, report.deleted, report.created) == (0, 0, 0)
        assert await self.lessons_on_jan8(repo) == [
            ("occ_ten", 9, "10:00", False), ("occ_two", 14, "14:00", False),
        ]


class TestClaimSlotTimes:
    """Test cases for claim_slot_times."""

    def generated(self, slot_time):
        return Occurrence(id=f"occ_{slot_time}", project_id="p", start_time=kst(2024, 1, 8, 9),
                          is_auto_generated=True, slot_date=date(2024, 1, 8), slot_time=slot_time)

    def test_lessons_hold_their_own_slots(self):
        claimed = claim_slot_times(["10:00", "14:00"], [self.generated("14:00")])

        assert claimed == {"14:00"}

    def test_stale_slot_takes_earliest_free(self):
        claimed = claim_slot_times(
            ["10:00", "14:00", "18:00"], [self.generated("14:00"), self.generated("16:00")]
        )

        assert claimed == {"10:00", "14:00"}

    def test_lessons_without_slot_hold_nothing(self):
        assert claim_slot_times(["10:00"], [self.generated(None)]) == set()
