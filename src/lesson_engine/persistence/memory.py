"""
In-memory store for occurrences and schedule definitions.

Used by the tests and as the base of the JSON file store. Records are
copied on the way in and out so callers never share state with the store.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..models.errors import OccurrenceNotFoundError, ScheduleNotFoundError
from ..models.occurrence import Occurrence
from ..models.schedule import ScheduleDefinition
from ..validation.command_validator import CommandValidator
from .repository import OccurrenceQuery, OccurrenceRepository


logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def _sort_key(occurrence: Occurrence):
    start = occurrence.start_time
    if start is None:
        return (1, _FAR_FUTURE, occurrence.id)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return (0, start, occurrence.id)


class InMemoryRepository(OccurrenceRepository):
    """
    Dictionary-backed repository.

    Examples:
        >>> repo = InMemoryRepository()
        >>> lesson = await repo.create_occurrence({"project_id": "p1"})
        >>> (await repo.get_occurrence(lesson.id)).project_id
        'p1'
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        validator: Optional[CommandValidator] = None
    ):
        super().__init__(validator)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._occurrences: Dict[str, Occurrence] = {}
        self._definitions: Dict[str, ScheduleDefinition] = {}

    def _new_id(self) -> str:
        return f"occ_{uuid.uuid4().hex[:12]}"

    def add_occurrence(self, occurrence: Occurrence) -> Occurrence:
        """Insert a fully-formed occurrence as-is (keeps its id)."""
        self._occurrences[occurrence.id] = copy.deepcopy(occurrence)
        return copy.deepcopy(occurrence)

    def all_occurrences(self) -> List[Occurrence]:
        """Snapshot of every stored occurrence, ordered by start_time."""
        return [copy.deepcopy(o) for o in sorted(self._occurrences.values(), key=_sort_key)]

    async def create_occurrence(self, fields: Dict[str, Any]) -> Occurrence:
        now = self._clock()
        updates = dict(fields)
        updates.pop("id", None)
        updates.setdefault("created_at", now)
        updates.setdefault("updated_at", now)
        occurrence = Occurrence(id=self._new_id()).with_updates(copy.deepcopy(updates))
        self._occurrences[occurrence.id] = occurrence
        self._on_change()
        logger.debug(f"Created occurrence {occurrence.id} ({occurrence.start_time})")
        return copy.deepcopy(occurrence)

    async def update_occurrence(self, occurrence_id: str, fields: Dict[str, Any]) -> None:
        current = self._occurrences.get(occurrence_id)
        if current is None:
            raise OccurrenceNotFoundError(occurrence_id)
        updates = copy.deepcopy(dict(fields))
        updates.pop("id", None)
        updates["updated_at"] = self._clock()
        self._occurrences[occurrence_id] = current.with_updates(updates)
        self._on_change()
        logger.debug(f"Updated occurrence {occurrence_id}: {sorted(fields)}")

    async def delete_occurrence(self, occurrence_id: str) -> None:
        if self._occurrences.pop(occurrence_id, None) is None:
            raise OccurrenceNotFoundError(occurrence_id)
        self._on_change()
        logger.debug(f"Deleted occurrence {occurrence_id}")

    async def get_occurrence(self, occurrence_id: str) -> Occurrence:
        occurrence = self._occurrences.get(occurrence_id)
        if occurrence is None:
            raise OccurrenceNotFoundError(occurrence_id)
        return copy.deepcopy(occurrence)

    async def query_occurrences(self, query: OccurrenceQuery) -> List[Occurrence]:
        matches = [o for o in self._occurrences.values() if query.matches(o)]
        return [copy.deepcopy(o) for o in sorted(matches, key=_sort_key)]

    async def get_schedule_definition(self, project_id: str) -> ScheduleDefinition:
        definition = self._definitions.get(project_id)
        if definition is None:
            raise ScheduleNotFoundError(project_id)
        return copy.deepcopy(definition)

    async def list_schedule_definitions(self) -> List[ScheduleDefinition]:
        return [copy.deepcopy(d) for d in self._definitions.values()]

    async def save_schedule_definition(self, definition: ScheduleDefinition) -> None:
        self._definitions[definition.project_id] = copy.deepcopy(definition)
        self._on_change()

    def _on_change(self):
        """Hook for subclasses that persist after each write."""
        pass
