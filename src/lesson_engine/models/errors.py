"""
Exception hierarchy of the lesson engine.

Stores and workflow steps raise these; the engine boundary converts them
into ``Result.failure`` with a message fit for the user.
"""

from typing import List, Optional


class LessonEngineError(Exception):
    """Base class for all lesson engine errors."""
    pass


class PersistenceError(LessonEngineError):
    """Raised by a store when a create/update/delete/query fails."""
    pass


class OccurrenceNotFoundError(PersistenceError):
    """Raised when an occurrence id is unknown to the store."""

    def __init__(self, occurrence_id: str):
        super().__init__(f"Occurrence not found: {occurrence_id}")
        self.occurrence_id = occurrence_id


class ScheduleNotFoundError(PersistenceError):
    """Raised when a schedule definition (project) is unknown to the store."""

    def __init__(self, project_id: str):
        super().__init__(f"Schedule definition not found: {project_id}")
        self.project_id = project_id


class CommandValidationError(LessonEngineError):
    """Raised when a command fails validation and is not dispatched."""

    def __init__(self, command_name: str, errors: List[str]):
        super().__init__(
            f"{command_name} rejected: " + "; ".join(errors)
        )
        self.command_name = command_name
        self.errors = errors


class InvariantViolationError(CommandValidationError):
    """Raised when a homework check list would contain a duplicate pair."""
    pass


class TerminalStateError(LessonEngineError):
    """Raised when a workflow tries to leave the cancelled state."""

    def __init__(self, occurrence_id: str):
        super().__init__(f"Occurrence {occurrence_id} is already cancelled")
        self.occurrence_id = occurrence_id


class NoEligibleOccurrenceError(LessonEngineError):
    """Raised when a cancelled lesson has no later lesson to forward homework to."""
    pass


class PartialCancellationError(LessonEngineError):
    """
    Raised when one half of a cross-record cancellation succeeded.

    Attributes:
        completed_step: Name of the last step that was persisted
    """

    def __init__(self, message: str, completed_step: Optional[str] = None):
        super().__init__(message)
        self.completed_step = completed_step


class HomeworkCheckNotFoundError(LessonEngineError):
    """Raised when a lesson has no homework check for a textbook chapter."""

    def __init__(self, occurrence_id: str, textbook_id: str, chapter: str):
        super().__init__(f"No homework check {textbook_id}/{chapter} on {occurrence_id}")
        self.occurrence_id = occurrence_id
        self.textbook_id = textbook_id
        self.chapter = chapter
