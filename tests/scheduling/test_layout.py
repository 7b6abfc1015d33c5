"""
Tests for the day view layout.
"""

from itertools import combinations

import pytest

from lesson_engine.models.occurrence import Occurrence
from lesson_engine.scheduling.layout import cluster_overlapping, layout_day

from tests.helpers import kst


def item(occurrence_id, hour, minute=0, duration=60):
    return Occurrence(id=occurrence_id, project_id="p", start_time=kst(2024, 1, 8, hour, minute),
                      duration=duration)


def columns_overlap(a, b):
    return (a.left_offset_percent < b.left_offset_percent + b.width_percent
            and b.left_offset_percent < a.left_offset_percent + a.width_percent)


class TestLayoutDay:
    """Test cases for layout_day."""

    def test_isolated_items_take_full_width(self):
        slots = layout_day([item("a", 9), item("b", 11), item("c", 13)])

        for slot in slots.values():
            assert slot.width_percent == 100
            assert slot.left_offset_percent == 0

    def test_back_to_back_items_do_not_overlap(self):
        slots = layout_day([item("a", 9), item("b", 10)])

        assert slots["a"].width_percent == 100
        assert slots["b"].width_percent == 100

    def test_two_overlapping_items_split(self):
        slots = layout_day([item("a", 9), item("b", 9, 30)])

        assert slots["a"].width_percent == 50
        assert slots["b"].width_percent == 50
        assert {slots["a"].left_offset_percent, slots["b"].left_offset_percent} == {0, 50}

    def test_transitive_chain_is_one_cluster(self):
        # a overlaps b, b overlaps c, a and c do not touch
        items = [item("a", 9), item("b", 9, 45), item("c", 10, 30)]

        assert len(cluster_overlapping(items)) == 1

        slots = layout_day(items)
        assert {s.width_percent for s in slots.values()} == {50}
        # c reuses a's column
        assert slots["a"].left_offset_percent == slots["c"].left_offset_percent == 0
        assert slots["b"].left_offset_percent == 50

    def test_three_way_overlap(self):
        slots = layout_day([item("a", 9), item("b", 9, 10), item("c", 9, 20)])

        assert sorted(s.left_offset_percent for s in slots.values()) == pytest.approx([0, 100 / 3, 200 / 3])
        assert all(s.column_count == 3 for s in slots.values())

    def test_no_time_overlap_shares_columns(self):
        items = [
            item("a", 9), item("b", 9), item("c", 9, 30, duration=90),
            item("d", 10, 15), item("e", 11, 30), item("f", 14),
        ]

        slots = layout_day(items)

        by_id = {o.id: o for o in items}
        for x, y in combinations(items, 2):
            in_time = x.start_time < y.end_time and y.start_time < x.end_time
            if in_time:
                assert not columns_overlap(slots[x.id], slots[y.id]), (x.id, y.id)
        assert slots["f"].width_percent == 100
        assert set(slots) == set(by_id)

    def test_unscheduled_items_excluded(self):
        loose = Occurrence(id="loose", project_id="p")

        slots = layout_day([item("a", 9), loose])

        assert "loose" not in slots
        assert slots["a"].to_dict() == {"widthPercent": 100.0, "leftOffsetPercent": 0.0}

    def test_input_order_does_not_matter_for_isolation(self):
        slots = layout_day([item("late", 15), item("early", 8)])

        assert slots["late"].width_percent == 100
        assert slots["early"].width_percent == 100

    def test_empty_day(self):
        assert layout_day([]) == {}
