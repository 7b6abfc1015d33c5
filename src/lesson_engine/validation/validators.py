"""
Validation framework with Strategy pattern.

This module provides:
- Abstract Validator interface
- ValidationResult for consistent validation reporting
- Field-level helpers shared by the schedule and command validators
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional


TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


@dataclass
class ValidationResult:
    """
    Result of data validation.

    Attributes:
        is_valid: Whether validation passed
        errors: List of error messages
        warnings: List of warning messages (non-fatal)
    """

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> 'ValidationResult':
        """
        Add an error message.

        Args:
            message: Error message to add

        Returns:
            Self for method chaining
        """
        self.errors.append(message)
        self.is_valid = False
        return self

    def add_warning(self, message: str) -> 'ValidationResult':
        """
        Add a warning message.

        Args:
            message: Warning message to add

        Returns:
            Self for method chaining
        """
        self.warnings.append(message)
        return self

    @property
    def has_errors(self) -> bool:
        """Check if there are errors."""
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        """Check if there are warnings."""
        return len(self.warnings) > 0

    def get_summary(self) -> str:
        """
        Get validation summary.

        Returns:
            Human-readable summary of validation results
        """
        if self.is_valid and not self.has_warnings:
            return "Validation passed"

        parts = []

        if self.has_errors:
            parts.append(f"Errors ({len(self.errors)}):")
            for error in self.errors:
                parts.append(f"  - {error}")

        if self.has_warnings:
            parts.append(f"Warnings ({len(self.warnings)}):")
            for warning in self.warnings:
                parts.append(f"  - {warning}")

        return "\n".join(parts)


class Validator(ABC):
    """
    Abstract base class for validators.

    Subclasses implement validate(); the helpers below return an error
    message, or None when the value is acceptable.
    """

    @abstractmethod
    def validate(self, data: Any) -> ValidationResult:
        """
        Validate data.

        Args:
            data: Data to validate

        Returns:
            ValidationResult with errors and warnings
        """
        pass

    def validate_required_fields(
        self,
        data: dict,
        required_fields: List[str]
    ) -> List[str]:
        """
        Validate that required fields exist.

        Args:
            data: Dictionary to check
            required_fields: List of required field names

        Returns:
            List of error messages for missing fields
        """
        errors = []
        for name in required_fields:
            if name not in data or data[name] is None:
                errors.append(f"Missing required field: {name}")
        return errors

    def validate_time_format(
        self,
        value: Any,
        field_name: str = "time"
    ) -> Optional[str]:
        """
        Validate a wall-clock time (HH:MM, 24-hour).

        Examples:
            >>> validator.validate_time_format("24:00")
            'Invalid time format: 24:00 (expected HH:MM)'
        """
        if not isinstance(value, str) or not TIME_PATTERN.match(value):
            return f"Invalid {field_name} format: {value} (expected HH:MM)"
        return None

    def validate_positive_number(
        self,
        value: Any,
        field_name: str
    ) -> Optional[str]:
        """
        Validate that value is a positive number.

        Args:
            value: Value to validate
            field_name: Name of the field (for error message)

        Returns:
            Error message if invalid, None if valid
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"{field_name} must be a number, got {type(value).__name__}"

        if value <= 0:
            return f"{field_name} must be positive, got {value}"

        return None

    def validate_aware_datetime(
        self,
        value: Any,
        field_name: str
    ) -> Optional[str]:
        """Validate that value is a timezone-aware datetime."""
        if not isinstance(value, datetime):
            return f"{field_name} must be a datetime, got {type(value).__name__}"
        if value.tzinfo is None or value.utcoffset() is None:
            return f"{field_name} must be timezone-aware"
        return None

    def validate_string_length(
        self,
        value: str,
        field_name: str,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None
    ) -> Optional[str]:
        """
        Validate string length.

        Args:
            value: String to validate
            field_name: Name of the field (for error message)
            min_length: Minimum length (optional)
            max_length: Maximum length (optional)

        Returns:
            Error message if invalid, None if valid
        """
        if not isinstance(value, str):
            return f"{field_name} must be a string, got {type(value).__name__}"

        length = len(value)

        if min_length is not None and length < min_length:
            return f"{field_name} must be at least {min_length} characters, got {length}"

        if max_length is not None and length > max_length:
            return f"{field_name} must be at most {max_length} characters, got {length}"

        return None
