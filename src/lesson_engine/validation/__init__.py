"""Validators for schedule definitions and occurrence commands."""

from .validators import ValidationResult, Validator
from .schedule_validator import ScheduleDefinitionValidator
from .command_validator import CommandValidator, find_duplicate_checks

__all__ = [
    "ValidationResult",
    "Validator",
    "ScheduleDefinitionValidator",
    "CommandValidator",
    "find_duplicate_checks",
]
