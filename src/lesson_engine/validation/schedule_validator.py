"""
Schedule definition validator.

Validates a student project's weekly template before it is saved and
handed to the generator.
"""

from typing import Any, Dict, Union

from ..models.occurrence import parse_date
from ..models.schedule import ScheduleDefinition
from .validators import Validator, ValidationResult


class ScheduleDefinitionValidator(Validator):
    """
    Validator for schedule definitions.

    Validates:
    - Required fields and project type
    - Template slots (day of week, HH:MM time, duration range)
    - Validity date range

    Examples:
        >>> validator = ScheduleDefinitionValidator()
        >>> result = validator.validate({
        ...     "id": "student_kim",
        ...     "type": "student",
        ...     "schedule_template": [{"day": 1, "time": "16:00", "duration": 50}],
        ...     "start_date": "2024-01-01",
        ... })
        >>> result.is_valid
        True
    """

    DAY_RANGE = range(0, 7)  # 0=Sunday ... 6=Saturday

    # Business rule constraints
    MIN_DURATION = 10  # minutes
    MAX_DURATION = 180  # minutes

    def validate(self, data: Union[Dict[str, Any], ScheduleDefinition]) -> ValidationResult:
        """
        Validate a schedule definition.

        Args:
            data: Project record dictionary or ScheduleDefinition

        Returns:
            ValidationResult with errors and warnings
        """
        if isinstance(data, ScheduleDefinition):
            data = data.to_dict()

        result = ValidationResult(is_valid=True)

        if not data.get("id") and not data.get("project_id"):
            result.add_error("Missing required field: id")

        if data.get("type", "student") != "student":
            result.add_error(
                f"Only student projects carry a lesson schedule, got type: {data.get('type')}"
            )

        template = data.get("schedule_template") or []
        if not isinstance(template, list):
            result.add_error("schedule_template must be a list")
            return result

        if not template:
            result.add_warning("schedule_template is empty; no lessons will be generated")

        seen = set()
        for index, slot in enumerate(template):
            label = f"schedule_template[{index}]"
            if not isinstance(slot, dict):
                result.add_error(f"{label} must be an object")
                continue

            for error in self.validate_required_fields(slot, ["day", "time"]):
                result.add_error(f"{label}: {error}")
            if "day" not in slot or "time" not in slot:
                continue

            day = slot["day"]
            if isinstance(day, bool) or not isinstance(day, int) or day not in self.DAY_RANGE:
                result.add_error(f"{label}: day must be an integer 0-6, got {day}")

            error = self.validate_time_format(slot["time"], f"{label}.time")
            if error:
                result.add_error(error)

            duration = slot.get("duration")
            if duration is not None:
                error = self.validate_positive_number(duration, f"{label}.duration")
                if error:
                    result.add_error(error)
                elif duration < self.MIN_DURATION:
                    result.add_error(
                        f"{label}: duration too short: {duration} minutes "
                        f"(minimum: {self.MIN_DURATION})"
                    )
                elif duration > self.MAX_DURATION:
                    result.add_warning(
                        f"{label}: duration unusually long: {duration} minutes "
                        f"(maximum recommended: {self.MAX_DURATION})"
                    )

            key = (day, slot["time"])
            if key in seen:
                result.add_warning(
                    f"{label}: duplicate slot day={day} time={slot['time']} "
                    f"(produces a single lesson)"
                )
            seen.add(key)

        try:
            start = parse_date(data.get("start_date"))
            end = parse_date(data.get("end_date"))
        except ValueError as e:
            result.add_error(f"Invalid date: {e}")
            return result

        if start and end and end < start:
            result.add_error(
                f"end_date {end.isoformat()} is before start_date {start.isoformat()}"
            )

        return result
