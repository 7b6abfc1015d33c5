"""
Day view layout.

Places the occurrences of one calendar day into side-by-side columns so
that items overlapping in time never share horizontal space, while an item
that overlaps nothing keeps the full width. Pure computation, no writes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..models.occurrence import Occurrence


@dataclass(frozen=True)
class LayoutSlot:
    """Horizontal placement of one occurrence, in percent of the day column."""

    width_percent: float
    left_offset_percent: float
    column: int = 0
    column_count: int = 1

    def to_dict(self) -> Dict[str, float]:
        return {
            "widthPercent": self.width_percent,
            "leftOffsetPercent": self.left_offset_percent,
        }


def _overlaps(a: Occurrence, b: Occurrence) -> bool:
    return a.start_time < b.end_time and b.start_time < a.end_time


def cluster_overlapping(occurrences: List[Occurrence]) -> List[List[Occurrence]]:
    """
    Split start-sorted occurrences into groups connected by overlap.

    A chain A-B-C where only neighbours overlap is one cluster.
    """
    clusters: List[List[Occurrence]] = []
    cluster_end: Optional[datetime] = None
    for occurrence in occurrences:
        if clusters and occurrence.start_time < cluster_end:
            clusters[-1].append(occurrence)
            if occurrence.end_time > cluster_end:
                cluster_end = occurrence.end_time
        else:
            clusters.append([occurrence])
            cluster_end = occurrence.end_time
    return clusters


def pack_columns(cluster: List[Occurrence]) -> List[List[Occurrence]]:
    """Put each occurrence in the leftmost column where it overlaps nothing."""
    columns: List[List[Occurrence]] = []
    for occurrence in cluster:
        for column in columns:
            if not any(_overlaps(occurrence, placed) for placed in column):
                column.append(occurrence)
                break
        else:
            columns.append([occurrence])
    return columns


def layout_day(occurrences: Iterable[Occurrence]) -> Dict[str, LayoutSlot]:
    """
    Compute side-by-side placement for one day's occurrences.

    Occurrences without a start_time are left out. Ties on start_time keep
    their input order.

    Args:
        occurrences: Occurrences visible on the day

    Returns:
        Mapping of occurrence id to LayoutSlot

    Examples:
        >>> slots = layout_day([lesson_9_00, lesson_9_30, lesson_11_00])
        >>> slots[lesson_11_00.id].width_percent
        100.0
    """
    timed = sorted(
        (o for o in occurrences if o.start_time is not None),
        key=lambda o: o.start_time
    )

    placement: Dict[str, LayoutSlot] = {}
    for cluster in cluster_overlapping(timed):
        columns = pack_columns(cluster)
        width = 100.0 / len(columns)
        for index, column in enumerate(columns):
            for occurrence in column:
                placement[occurrence.id] = LayoutSlot(
                    width_percent=width,
                    left_offset_percent=index * width,
                    column=index,
                    column_count=len(columns),
                )
    return placement
