"""
SchedulingResult -- uniform success/failure wrapper for service operations.

Every public SchedulingService operation returns a SchedulingResult.  A
failed result carries the machine-readable ``error_code`` of the kernel
exception that caused it, so callers can branch on codes rather than
messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from scheduling_kernel.exceptions import (
    NotFoundError,
    SchedulingKernelError,
    SchedulingValidationError,
)

T = TypeVar("T")


class SchedulingStatus(str, Enum):
    """Outcome of a scheduling service operation."""

    SUCCEEDED = "succeeded"
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    DOMAIN_ERROR = "domain_error"


class SchedulingResultError(Exception):
    """Raised by ``unwrap()`` on a failed result."""

    def __init__(self, status: SchedulingStatus, error_code: str | None, message: str | None):
        self.status = status
        self.error_code = error_code
        super().__init__(f"{status.value} [{error_code}]: {message}")


@dataclass(frozen=True)
class SchedulingResult(Generic[T]):
    """Result of a scheduling service operation."""

    status: SchedulingStatus
    value: T | None = None
    message: str | None = None
    error_code: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == SchedulingStatus.SUCCEEDED

    @classmethod
    def ok(cls, value: T) -> SchedulingResult[T]:
        return cls(status=SchedulingStatus.SUCCEEDED, value=value)

    @classmethod
    def fail(
        cls,
        status: SchedulingStatus,
        message: str,
        error_code: str | None = None,
    ) -> SchedulingResult[T]:
        if status == SchedulingStatus.SUCCEEDED:
            raise ValueError("fail() requires a failure status")
        return cls(status=status, message=message, error_code=error_code)

    @classmethod
    def from_error(cls, error: SchedulingKernelError) -> SchedulingResult[T]:
        """Map a kernel exception onto a failed result by exception family."""
        if isinstance(error, SchedulingValidationError):
            status = SchedulingStatus.VALIDATION_FAILED
        elif isinstance(error, NotFoundError):
            status = SchedulingStatus.NOT_FOUND
        else:
            status = SchedulingStatus.DOMAIN_ERROR
        return cls(status=status, message=str(error), error_code=error.code)

    def unwrap(self) -> T:
        """Return the value, or raise SchedulingResultError if failed."""
        if not self.is_success:
            raise SchedulingResultError(self.status, self.error_code, self.message)
        return self.value  # type: ignore[return-value]
