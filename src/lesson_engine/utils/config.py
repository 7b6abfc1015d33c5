"""
Configuration management with environment variables.

This module provides centralized configuration for the lesson engine,
loaded from the environment (and a ``.env`` file when present).
"""

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from dotenv import load_dotenv


class Config:
    """
    Application configuration manager.

    Attributes:
        default_duration: Fallback lesson length in minutes
        lookahead_weeks: Weeks added past the visible calendar window
        sync_weeks: Weeks regenerated after a template edit
        debounce_ms: Debounce delay of the lazy generation trigger
        timezone_name: IANA zone for template times and calendar days
        data_file: JSON store used by the CLI
        output_dir: Directory for exports and log files
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Examples:
        >>> config = Config()
        >>> if config.validate():
        ...     print(f"Lessons in {config.timezone_name}")
    """

    # Navigation bursts collapse into one generation run below this delay
    MIN_DEBOUNCE_MS = 500

    def __init__(self):
        """Initialize configuration by loading environment variables."""
        load_dotenv()

        self._default_duration = int(os.getenv("LESSON_DEFAULT_DURATION", "40"))
        self._lookahead_weeks = int(os.getenv("LESSON_LOOKAHEAD_WEEKS", "6"))
        self._sync_weeks = int(os.getenv("LESSON_SYNC_WEEKS", "8"))
        self._debounce_ms = int(os.getenv("GENERATION_DEBOUNCE_MS", "500"))
        self._timezone_name = os.getenv("LESSON_TIMEZONE", "Asia/Seoul")

        self._output_dir = Path(os.getenv("OUTPUT_DIR", "output"))
        self._data_file = Path(
            os.getenv("LESSON_DATA_FILE", str(self._output_dir / "lessons.json"))
        )
        self._log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def default_duration(self) -> int:
        """Get fallback lesson duration in minutes."""
        return self._default_duration

    @property
    def lookahead_weeks(self) -> int:
        return self._lookahead_weeks

    @property
    def sync_weeks(self) -> int:
        return self._sync_weeks

    @property
    def debounce_ms(self) -> int:
        return self._debounce_ms

    @property
    def debounce_seconds(self) -> float:
        """Debounce delay as asyncio expects it."""
        return self._debounce_ms / 1000.0

    @property
    def timezone_name(self) -> str:
        return self._timezone_name

    @property
    def timezone(self) -> ZoneInfo:
        """
        Get the lesson time zone.

        Raises:
            ValueError: If LESSON_TIMEZONE is not a known zone
        """
        try:
            return ZoneInfo(self._timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown LESSON_TIMEZONE: {self._timezone_name}") from e

    @property
    def data_file(self) -> Path:
        return self._data_file

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def log_level(self) -> str:
        return self._log_level

    def validate(self) -> bool:
        """
        Validate configuration values.

        Returns:
            True if all configuration is valid

        Raises:
            ValueError: If validation fails
        """
        errors = []

        if self._default_duration <= 0:
            errors.append("LESSON_DEFAULT_DURATION must be positive")

        if self._lookahead_weeks < 0:
            errors.append("LESSON_LOOKAHEAD_WEEKS must not be negative")

        if self._sync_weeks <= 0:
            errors.append("LESSON_SYNC_WEEKS must be positive")

        if self._debounce_ms < self.MIN_DEBOUNCE_MS:
            errors.append(
                f"GENERATION_DEBOUNCE_MS must be at least {self.MIN_DEBOUNCE_MS}"
            )

        try:
            self.timezone
        except ValueError as e:
            errors.append(str(e))

        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self._log_level not in valid_levels:
            errors.append(
                f"LOG_LEVEL must be one of: {', '.join(valid_levels)}"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ValueError(error_msg)

        return True

    def create_output_directories(self):
        """Create output directories if they don't exist."""
        for directory in [self.output_dir, self.data_file.parent]:
            directory.mkdir(parents=True, exist_ok=True)


# Singleton instance
config = Config()
