"""
Tests for the LessonEngine facade.
"""

from datetime import date

import pandas as pd
import pytest

from lesson_engine.engine import CANCEL_INCOMPLETE_MESSAGE, LessonEngine
from lesson_engine.models.commands import CancelForwardCommand
from lesson_engine.models.errors import (
    HomeworkCheckNotFoundError,
    PersistenceError,
    ScheduleNotFoundError,
)
from lesson_engine.models.schedule import TemplateSlot
from lesson_engine.scheduling.cancellation import CancelMode, PendingCancel

from tests.helpers import KST, assignment, check, fail_once_on, kst


@pytest.fixture
def engine(repo, clock):
    return LessonEngine(
        repo,
        tz=KST,
        clock=clock,
        default_duration=40,
        lookahead_weeks=1,
        sync_weeks=4,
        debounce_seconds=0.01,
    )


class TestGenerationBoundary:
    """Test cases for generation entry points."""

    @pytest.mark.asyncio
    async def test_ensure_loads_stored_definitions(self, engine, repo, definition):
        await repo.save_schedule_definition(definition)

        result = await engine.ensure_schedule_in_range(None, date(2024, 1, 1), date(2024, 1, 8))

        assert result.is_success
        assert len(repo.all_occurrences()) == 2

    @pytest.mark.asyncio
    async def test_visible_range_burst_runs_once(self, engine, repo, definition):
        await repo.save_schedule_definition(definition)

        for _ in range(3):
            engine.on_visible_range_changed(date(2024, 1, 1), date(2024, 1, 8))
        await engine.trigger.wait_idle()

        assert engine.trigger.runs_started == 1
        # window end pushed out by one week of lookahead
        assert [o.start_time for o in repo.all_occurrences()] == [
            kst(2024, 1, 1, 16), kst(2024, 1, 3, 17), kst(2024, 1, 8, 16), kst(2024, 1, 10, 17),
        ]

    @pytest.mark.asyncio
    async def test_sync_rejects_invalid_definition(self, engine, repo, definition):
        definition.schedule_template = [TemplateSlot(day=9, time="16:00")]

        result = await engine.sync_project_schedule(definition)

        assert result.is_failure
        assert "invalid" in result.message
        with pytest.raises(ScheduleNotFoundError):
            await repo.get_schedule_definition("student_kim")

    @pytest.mark.asyncio
    async def test_sync_saves_and_generates(self, engine, repo, definition):
        result = await engine.sync_project_schedule(definition)

        assert result.is_success
        assert (await repo.get_schedule_definition("student_kim")).name == "Kim"
        assert result.value.created == 8


class TestLessonEdits:
    """Test cases for reschedule and homework entry points."""

    @pytest.mark.asyncio
    async def test_manual_reschedule_survives_sync(self, engine, repo, definition, make_lesson):
        lesson = make_lesson("occ_mon", kst(2024, 1, 8, 16),
                             slot_date=date(2024, 1, 8), slot_time="16:00")

        moved = await engine.reschedule_occurrence(lesson, kst(2024, 1, 8, 18), 60)
        definition.schedule_template = [TemplateSlot(day=1, time="15:00")]
        await engine.sync_project_schedule(definition)

        assert moved.is_success
        assert moved.value.is_manually_modified
        stored = await repo.get_occurrence("occ_mon")
        assert stored.start_time == kst(2024, 1, 8, 18)
        assert stored.duration == 60

    @pytest.mark.asyncio
    async def test_reschedule_cancelled_fails(self, engine, make_lesson):
        lesson = make_lesson("occ_1", kst(2024, 1, 8, 16), cancelled=True)

        result = await engine.reschedule_occurrence(lesson, kst(2024, 1, 8, 18))

        assert result.is_failure
        assert result.message == "This lesson is already cancelled"

    @pytest.mark.asyncio
    async def test_load_carries_homework(self, engine, repo, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 1, 16), assignments=[assignment("T1", "2")])
        current = make_lesson("occ_2", kst(2024, 1, 8, 16))

        result = await engine.on_occurrence_loaded(current)

        assert result.is_success
        assert [c.chapter for c in result.value.homework_checks] == ["2"]

    @pytest.mark.asyncio
    async def test_toggle_unknown_check_fails(self, engine, make_lesson):
        lesson = make_lesson("occ_1", kst(2024, 1, 8, 16), checks=[check("T1", "1")])

        result = await engine.toggle_homework_check(lesson, "T1", "2", True)

        assert result.is_failure
        assert isinstance(result.error, HomeworkCheckNotFoundError)
        assert result.message == "This homework item is not on the lesson"

    @pytest.mark.asyncio
    async def test_purge_reports_count(self, engine, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16), checks=[check("T1", "1")])

        result = await engine.purge_textbook("student_kim", "T1")

        assert result.value == 1


class TestCancelLesson:
    """Test cases for cancel_lesson and makeup placement."""

    @pytest.mark.asyncio
    async def test_forward_next(self, engine, repo, make_lesson):
        first = make_lesson("occ_1", kst(2024, 1, 1, 16), assignments=[assignment("T1", "5")])
        make_lesson("occ_2", kst(2024, 1, 8, 16), checks=[check("T1", "1")])

        result = await engine.cancel_lesson(first, "forward-next")

        assert result.is_success
        assert result.value.target_id == "occ_2"

    @pytest.mark.asyncio
    async def test_no_next_lesson_message(self, engine, repo, make_lesson):
        last = make_lesson("occ_1", kst(2024, 1, 1, 16), assignments=[assignment("T1", "5")])

        result = await engine.cancel_lesson(last, CancelMode.FORWARD_NEXT)

        assert result.is_failure
        assert "no later lesson" in result.message
        assert not (await repo.get_occurrence("occ_1")).is_cancelled

    @pytest.mark.asyncio
    async def test_partial_failure_generic_message(self, engine, repo, make_lesson):
        first = make_lesson("occ_1", kst(2024, 1, 1, 16), assignments=[assignment("T1", "5")])
        make_lesson("occ_2", kst(2024, 1, 8, 16))

        with fail_once_on(repo, CancelForwardCommand):
            result = await engine.cancel_lesson(first, "forward-next")

        assert result.is_failure
        assert result.message == CANCEL_INCOMPLETE_MESSAGE

    @pytest.mark.asyncio
    async def test_unknown_mode(self, engine, make_lesson):
        lesson = make_lesson("occ_1", kst(2024, 1, 1, 16))

        result = await engine.cancel_lesson(lesson, "postpone")

        assert result.is_failure

    @pytest.mark.asyncio
    async def test_makeup_first_round_trip(self, engine, repo, make_lesson):
        lesson = make_lesson("occ_1", kst(2024, 1, 1, 16), assignments=[assignment("T1", "3", "4")])

        started = await engine.cancel_lesson(lesson, "makeup-first")

        assert isinstance(started.value, PendingCancel)
        assert engine.in_makeup_mode

        placed = await engine.place_makeup(kst(2024, 1, 3, 15))

        assert placed.is_success
        assert not engine.in_makeup_mode
        assert (await repo.get_occurrence("occ_1")).is_cancelled

    @pytest.mark.asyncio
    async def test_abandon(self, engine, repo, make_lesson):
        lesson = make_lesson("occ_1", kst(2024, 1, 1, 16), assignments=[assignment("T1", "3")])
        await engine.cancel_lesson(lesson, "makeup-first")

        engine.abandon_makeup()
        result = await engine.place_makeup(kst(2024, 1, 3, 15))

        assert result.is_failure
        assert not (await repo.get_occurrence("occ_1")).is_cancelled


class TestDisplayAndExport:
    """Test cases for layout and CSV export."""

    @pytest.mark.asyncio
    async def test_layout_of_stored_day(self, engine, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16))
        make_lesson("occ_2", kst(2024, 1, 8, 16, 30), project_id="student_lee")
        make_lesson("occ_3", kst(2024, 1, 9, 16))

        occurrences = await engine.occurrences_on(date(2024, 1, 8))
        slots = engine.layout_day(occurrences)

        assert set(slots) == {"occ_1", "occ_2"}
        assert all(s.width_percent == 50 for s in slots.values())

    @pytest.mark.asyncio
    async def test_export_schedule(self, engine, repo, definition, tmp_path):
        await engine.ensure_schedule_in_range([definition], date(2024, 1, 1), date(2024, 1, 15))
        lesson = repo.all_occurrences()[0]
        await engine.set_homework_assignments(lesson, [assignment("T1", "1", "2")])

        result = await engine.export_schedule(date(2024, 1, 1), date(2024, 1, 8), tmp_path / "jan.csv")

        assert result.is_success
        df = pd.read_csv(tmp_path / "jan.csv")
        assert len(df) == 2
        assert df.loc[0, "homework_assigned"] == 2
        assert df.loc[0, "title"] == "Kim"

    @pytest.mark.asyncio
    async def test_export_store_failure(self, engine, repo, tmp_path, monkeypatch):
        async def broken(query):
            raise PersistenceError("offline")

        monkeypatch.setattr(repo, "query_occurrences", broken)

        result = await engine.export_schedule(date(2024, 1, 1), date(2024, 1, 8), tmp_path / "x.csv")

        assert result.is_failure
        assert not (tmp_path / "x.csv").exists()
