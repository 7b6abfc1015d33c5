"""
Abstract persistence interface.

The lesson engine never talks to a database directly. It depends on this
interface, which enables:
- Swapping the in-memory store, the JSON file store or a remote backend
- Easy failure injection in tests

All operations are coroutines; each call is its own atomic unit and no
cross-record transaction is assumed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.commands import OccurrenceCommand
from ..models.occurrence import Occurrence
from ..models.schedule import ScheduleDefinition
from ..validation.command_validator import CommandValidator


@dataclass(frozen=True)
class OccurrenceQuery:
    """
    Filter for ``query_occurrences``.

    Attributes:
        project_id: Only occurrences of this project
        after: Inclusive lower bound on start_time
        before: Exclusive upper bound on start_time
        is_cancelled: Only cancelled (True) or only live (False) occurrences

    Occurrences without a start_time never match a time-bounded query.
    """

    project_id: Optional[str] = None
    after: Optional[datetime] = None
    before: Optional[datetime] = None
    is_cancelled: Optional[bool] = None

    def matches(self, occurrence: Occurrence) -> bool:
        if self.project_id is not None and occurrence.project_id != self.project_id:
            return False
        if self.is_cancelled is not None and occurrence.is_terminal != self.is_cancelled:
            return False
        if self.after is not None or self.before is not None:
            if occurrence.start_time is None:
                return False
            if self.after is not None and occurrence.start_time < self.after:
                return False
            if self.before is not None and occurrence.start_time >= self.before:
                return False
        return True


class OccurrenceRepository(ABC):
    """
    Abstract interface for occurrence and schedule-definition storage.

    Implementations raise ``PersistenceError`` (or a subclass) on failure.
    """

    def __init__(self, validator: Optional[CommandValidator] = None):
        self.validator = validator or CommandValidator()

    @abstractmethod
    async def create_occurrence(self, fields: Dict[str, Any]) -> Occurrence:
        """
        Create an occurrence.

        Args:
            fields: Occurrence attribute values (everything except ``id``)

        Returns:
            The stored occurrence with its new id
        """
        pass

    @abstractmethod
    async def update_occurrence(self, occurrence_id: str, fields: Dict[str, Any]) -> None:
        """
        Apply a partial update.

        Raises:
            OccurrenceNotFoundError: If the id is unknown
        """
        pass

    @abstractmethod
    async def delete_occurrence(self, occurrence_id: str) -> None:
        """Delete an occurrence."""
        pass

    @abstractmethod
    async def get_occurrence(self, occurrence_id: str) -> Occurrence:
        """
        Fetch one occurrence.

        Raises:
            OccurrenceNotFoundError: If the id is unknown
        """
        pass

    @abstractmethod
    async def query_occurrences(self, query: OccurrenceQuery) -> List[Occurrence]:
        """Return matching occurrences ordered by start_time (unscheduled last)."""
        pass

    @abstractmethod
    async def get_schedule_definition(self, project_id: str) -> ScheduleDefinition:
        """
        Fetch a schedule definition.

        Raises:
            ScheduleNotFoundError: If the project is unknown
        """
        pass

    @abstractmethod
    async def list_schedule_definitions(self) -> List[ScheduleDefinition]:
        """Return every stored schedule definition."""
        pass

    @abstractmethod
    async def save_schedule_definition(self, definition: ScheduleDefinition) -> None:
        """Insert or replace a schedule definition."""
        pass

    async def apply(self, command: OccurrenceCommand) -> None:
        """
        Validate a command and write its fields.

        Raises:
            CommandValidationError: If the command is rejected (nothing written)
        """
        self.validator.ensure_valid(command)
        await self.update_occurrence(command.occurrence_id, command.to_fields())
