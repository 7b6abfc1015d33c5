"""
Command validator.

Checks every occurrence command before it reaches the store.
"""

import logging
from typing import List, Sequence

from ..models.commands import (
    CancelForwardCommand,
    CancelWithMakeupCommand,
    CarryOverCommand,
    HomeworkUpdateCommand,
    OccurrenceCommand,
    RescheduleCommand,
)
from ..models.errors import CommandValidationError, InvariantViolationError
from ..models.occurrence import HomeworkCheck
from .validators import Validator, ValidationResult


logger = logging.getLogger(__name__)


def find_duplicate_checks(checks: Sequence[HomeworkCheck]) -> List[str]:
    """
    List the (textbook_id, chapter) pairs that occur more than once.

    Examples:
        >>> find_duplicate_checks([
        ...     HomeworkCheck("T1", "Grammar", "3"),
        ...     HomeworkCheck("T1", "Grammar", "3"),
        ... ])
        ['T1/3']
    """
    seen = set()
    duplicates = []
    for check in checks:
        if check.key in seen:
            duplicates.append(f"{check.textbook_id}/{check.chapter}")
        seen.add(check.key)
    return duplicates


class CommandValidator(Validator):
    """
    Validator for occurrence commands.

    Validates:
    - Target ids
    - Reschedule times and durations
    - That cancel commands clear the cancelled lesson's assignments
    - That homework check lists hold no duplicate (textbook, chapter) pair

    Examples:
        >>> validator = CommandValidator()
        >>> validator.ensure_valid(CarryOverCommand("occ_2", checks))
    """

    def validate(self, data: OccurrenceCommand) -> ValidationResult:
        """
        Validate a command.

        Args:
            data: One of the occurrence command dataclasses

        Returns:
            ValidationResult with errors and warnings
        """
        result = ValidationResult(is_valid=True)

        error = self.validate_string_length(
            getattr(data, "occurrence_id", None), "occurrence_id", min_length=1
        )
        if error:
            result.add_error(error)

        if isinstance(data, RescheduleCommand):
            error = self.validate_aware_datetime(data.start_time, "start_time")
            if error:
                result.add_error(error)
            error = self.validate_positive_number(data.duration, "duration")
            if error:
                result.add_error(error)
            if data.slot_time is not None:
                error = self.validate_time_format(data.slot_time, "slot_time")
                if error:
                    result.add_error(error)

        elif isinstance(data, CancelWithMakeupCommand):
            self._validate_target(result, data.occurrence_id, data.makeup_occurrence_id, "makeup_occurrence_id")
            self._validate_cancel_fields(result, data)

        elif isinstance(data, CancelForwardCommand):
            self._validate_target(result, data.occurrence_id, data.next_occurrence_id, "next_occurrence_id")
            self._validate_cancel_fields(result, data)

        elif isinstance(data, CarryOverCommand):
            self._validate_checks(result, data.homework_checks)

        elif isinstance(data, HomeworkUpdateCommand):
            if data.homework_checks is None and data.homework_assignments is None:
                result.add_error("HomeworkUpdateCommand changes nothing")
            if data.homework_checks is not None:
                self._validate_checks(result, data.homework_checks)
            for assignment in data.homework_assignments or []:
                if not assignment.textbook_id:
                    result.add_error("Assignment is missing textbook_id")
                if not assignment.chapters:
                    result.add_warning(
                        f"Assignment for {assignment.textbook_id} has no chapters"
                    )

        else:
            result.add_error(f"Unknown command type: {type(data).__name__}")

        return result

    def ensure_valid(self, command: OccurrenceCommand) -> None:
        """
        Raise unless ``command`` may be dispatched.

        Raises:
            InvariantViolationError: If a check list holds a duplicate pair
            CommandValidationError: For any other validation error
        """
        checks = getattr(command, "homework_checks", None)
        if checks:
            duplicates = find_duplicate_checks(checks)
            if duplicates:
                logger.error(
                    f"Duplicate homework checks in {type(command).__name__}: {duplicates}"
                )
                raise InvariantViolationError(
                    type(command).__name__,
                    [f"duplicate homework check {d}" for d in duplicates],
                )

        result = self.validate(command)
        if not result.is_valid:
            raise CommandValidationError(type(command).__name__, result.errors)

    def _validate_target(
        self,
        result: ValidationResult,
        occurrence_id: str,
        other_id: str,
        field_name: str
    ):
        error = self.validate_string_length(other_id, field_name, min_length=1)
        if error:
            result.add_error(error)
        elif other_id == occurrence_id:
            result.add_error(f"{field_name} must differ from occurrence_id")

    def _validate_cancel_fields(self, result: ValidationResult, command):
        if command.to_fields().get("homework_assignments") != []:
            result.add_error("Cancellation must clear homework_assignments")

    def _validate_checks(self, result: ValidationResult, checks: Sequence[HomeworkCheck]):
        for check in checks:
            if not check.textbook_id or not check.chapter:
                result.add_error("Homework check needs textbook_id and chapter")
        for duplicate in find_duplicate_checks(checks):
            result.add_error(f"Duplicate homework check: {duplicate}")
