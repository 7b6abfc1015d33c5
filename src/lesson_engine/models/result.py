"""
Result<T> pattern for workflow boundaries.

Generation runs, cancellations and homework edits report their outcome
through this wrapper instead of raising, so the surrounding application
gets one shape to show to the user or write to the log.
"""

from dataclasses import dataclass
from typing import Optional, Generic, TypeVar, Callable
from enum import Enum


T = TypeVar('T')
U = TypeVar('U')


class ResultStatus(Enum):
    """Status of a Result."""
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class Result(Generic[T]):
    """
    Outcome of a lesson-engine operation.

    Attributes:
        status: SUCCESS or FAILURE
        value: Payload of a successful operation (None on failure)
        error: Exception behind a failure, if any
        message: Human-readable message (user-visible on failure)

    Examples:
        >>> result = Result.success(3, "Created 3 lessons")
        >>> result.unwrap()
        3

        >>> result = Result.failure("No upcoming lesson to forward homework to")
        >>> result.is_failure
        True
    """

    status: ResultStatus
    value: Optional[T] = None
    error: Optional[Exception] = None
    message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        """Check if the result represents success."""
        return self.status == ResultStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        """Check if the result represents failure."""
        return self.status == ResultStatus.FAILURE

    @classmethod
    def success(cls, value: T, message: Optional[str] = None) -> 'Result[T]':
        """
        Create a successful result.

        Args:
            value: The result value
            message: Optional success message

        Returns:
            Result instance with SUCCESS status
        """
        return cls(status=ResultStatus.SUCCESS, value=value, message=message)

    @classmethod
    def failure(
        cls,
        message: str,
        error: Optional[Exception] = None
    ) -> 'Result[T]':
        """
        Create a failure result.

        Args:
            message: Message describing the failure
            error: Optional exception that caused the failure

        Returns:
            Result instance with FAILURE status
        """
        return cls(status=ResultStatus.FAILURE, message=message, error=error)

    def unwrap(self) -> T:
        """
        Return the value of a successful result.

        Raises:
            ValueError: If the result is a failure
        """
        if self.is_failure:
            raise ValueError(f"Cannot unwrap failure result: {self.message}")
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return the value, or ``default`` when the result is a failure."""
        return self.value if self.is_success else default

    def map(self, func: Callable[[T], U]) -> 'Result[U]':
        """
        Apply ``func`` to the success value.

        Failures pass through unchanged; an exception raised by ``func``
        turns into a failure carrying that exception.

        Examples:
            >>> Result.success([1, 2]).map(len).value
            2
        """
        if self.is_failure:
            return Result.failure(self.message, self.error)

        try:
            return Result.success(func(self.value), self.message)
        except Exception as e:
            return Result.failure(str(e), e)
