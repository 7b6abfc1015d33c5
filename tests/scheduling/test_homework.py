"""
Tests for user homework edits.
"""

import pytest

from lesson_engine.models.errors import (
    HomeworkCheckNotFoundError,
    InvariantViolationError,
    TerminalStateError,
)
from lesson_engine.models.commands import CarryOverCommand
from lesson_engine.scheduling.homework import HomeworkEditor, normalize_assignments

from tests.helpers import assignment, check, kst


class TestNormalizeAssignments:
    """Test cases for normalize_assignments."""

    def test_merges_and_dedupes(self):
        result = normalize_assignments([
            assignment("T1", "1", "2"),
            assignment("T2", "7"),
            assignment("T1", "2", "3"),
        ])

        assert [(a.textbook_id, a.chapters) for a in result] == [
            ("T1", ["1", "2", "3"]),
            ("T2", ["7"]),
        ]

    def test_drops_empty_entries(self):
        assert normalize_assignments([assignment("T1")]) == []


class TestHomeworkEditor:
    """Test cases for HomeworkEditor."""

    @pytest.fixture
    def editor(self, repo, clock):
        return HomeworkEditor(repo, clock=clock)

    @pytest.mark.asyncio
    async def test_toggle_stamps_completion(self, editor, repo, clock, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16), checks=[check("T1", "1"), check("T1", "2")])

        toggled = await editor.toggle_check("occ_1", "T1", "2", True)

        stored = await repo.get_occurrence("occ_1")
        assert toggled.is_completed
        assert stored.homework_checks[1].is_completed
        assert stored.homework_checks[1].completed_at == clock.now.isoformat()
        assert not stored.homework_checks[0].is_completed

    @pytest.mark.asyncio
    async def test_untoggle_clears_completion(self, editor, repo, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16), checks=[check("T1", "1", completed=True)])

        await editor.toggle_check("occ_1", "T1", "1", False)

        stored = await repo.get_occurrence("occ_1")
        assert not stored.homework_checks[0].is_completed
        assert stored.homework_checks[0].completed_at is None

    @pytest.mark.asyncio
    async def test_toggle_unknown_check(self, editor, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16))

        with pytest.raises(HomeworkCheckNotFoundError) as excinfo:
            await editor.toggle_check("occ_1", "T1", "9", True)

        assert excinfo.value.occurrence_id == "occ_1"
        assert (excinfo.value.textbook_id, excinfo.value.chapter) == ("T1", "9")

    @pytest.mark.asyncio
    async def test_set_assignments(self, editor, repo, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16))

        saved = await editor.set_assignments("occ_1", [assignment("T1", "4", "4", "5")])

        assert saved == [assignment("T1", "4", "5")]
        assert (await repo.get_occurrence("occ_1")).homework_assignments == saved

    @pytest.mark.asyncio
    async def test_set_assignments_rejected_on_cancelled(self, editor, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16), cancelled=True)

        with pytest.raises(TerminalStateError):
            await editor.set_assignments("occ_1", [assignment("T1", "4")])

    @pytest.mark.asyncio
    async def test_purge_textbook(self, editor, repo, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 1, 16),
                    assignments=[assignment("T1", "1"), assignment("T2", "1")])
        make_lesson("occ_2", kst(2024, 1, 8, 16), checks=[check("T1", "1"), check("T2", "1")])
        make_lesson("occ_3", kst(2024, 1, 15, 16), checks=[check("T2", "2")])
        make_lesson("other", kst(2024, 1, 8, 18), project_id="student_lee", checks=[check("T1", "1")])

        changed = await editor.purge_textbook("student_kim", "T1")

        assert changed == 2
        first = await repo.get_occurrence("occ_1")
        second = await repo.get_occurrence("occ_2")
        assert [a.textbook_id for a in first.homework_assignments] == ["T2"]
        assert [c.textbook_id for c in second.homework_checks] == ["T2"]
        other = await repo.get_occurrence("other")
        assert [c.textbook_id for c in other.homework_checks] == ["T1"]

    @pytest.mark.asyncio
    async def test_store_rejects_duplicate_checks(self, repo, make_lesson):
        make_lesson("occ_1", kst(2024, 1, 8, 16))

        with pytest.raises(InvariantViolationError):
            await repo.apply(CarryOverCommand("occ_1", [check("T1", "1"), check("T1", "1")]))
