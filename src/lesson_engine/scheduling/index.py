"""
Neighbour lookup over a project's lessons.

The carry-over and cancellation workflows both need "the lesson right
before/after this one". The index keeps each project's occurrences sorted
by start time so the lookup is a bisect plus a short walk past lessons
the caller's predicate rejects (cancelled ones, plain tasks).
"""

from bisect import bisect_left, bisect_right
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from ..models.occurrence import Occurrence


OccurrencePredicate = Callable[[Occurrence], bool]


class OccurrenceIndex:
    """
    Occurrences grouped by project and ordered by start_time.

    Occurrences without a project or a start_time are not indexed.

    Examples:
        >>> index = OccurrenceIndex(lessons)
        >>> index.previous("student_kim", lesson.start_time, lambda o: not o.is_terminal)
    """

    def __init__(self, occurrences: Iterable[Occurrence] = ()):
        self._by_project: Dict[str, List[Occurrence]] = {}
        self._starts: Dict[str, List[float]] = {}
        for occurrence in occurrences:
            if occurrence.project_id is None or occurrence.start_time is None:
                continue
            self._by_project.setdefault(occurrence.project_id, []).append(occurrence)

        for project_id, items in self._by_project.items():
            items.sort(key=lambda o: (o.start_time.timestamp(), o.id))
            self._starts[project_id] = [o.start_time.timestamp() for o in items]

    def __len__(self) -> int:
        return sum(len(items) for items in self._by_project.values())

    def for_project(self, project_id: str) -> List[Occurrence]:
        return list(self._by_project.get(project_id, []))

    def previous(
        self,
        project_id: str,
        before: datetime,
        predicate: Optional[OccurrencePredicate] = None
    ) -> Optional[Occurrence]:
        """
        Latest occurrence starting strictly before ``before`` that satisfies ``predicate``.
        """
        items = self._by_project.get(project_id, [])
        position = bisect_left(self._starts.get(project_id, []), before.timestamp())
        for i in range(position - 1, -1, -1):
            if predicate is None or predicate(items[i]):
                return items[i]
        return None

    def next(
        self,
        project_id: str,
        after: datetime,
        predicate: Optional[OccurrencePredicate] = None
    ) -> Optional[Occurrence]:
        """
        Earliest occurrence starting strictly after ``after`` that satisfies ``predicate``.
        """
        items = self._by_project.get(project_id, [])
        position = bisect_right(self._starts.get(project_id, []), after.timestamp())
        for i in range(position, len(items)):
            if predicate is None or predicate(items[i]):
                return items[i]
        return None
