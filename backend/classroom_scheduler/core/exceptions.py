# backend/classroom_scheduler/core/exceptions.py
"""
Domain-specific exceptions for the classroom scheduler.

Services raise these; the API layer converts them with
``to_http_exception()``. Each family carries its HTTP status as a class
attribute.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    headers: Optional[Dict[str, str]] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": self.message, "code": self.code, "details": self.details},
            headers=self.headers,
        )


class ValidationException(DomainException):
    """Malformed input or a missing required parameter."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """A rule or session referenced by id does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """
    An insert lost a uniqueness race.

    The materializer resolves this internally by re-fetching the winning row,
    so callers normally never see it.
    """

    status_code = status.HTTP_409_CONFLICT


class PersistenceException(DomainException):
    """The underlying store failed. Scheduler writes are idempotent, so retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    headers = {"Retry-After": "2"}


# Specific business exceptions


class InvalidDayException(ValidationException):
    def __init__(self, value: Any):
        super().__init__(
            message=f"Unrecognized day of week: {value!r}",
            code="INVALID_DAY",
            details={"value": str(value)},
        )


class ScheduleNotFoundException(NotFoundException):
    def __init__(self, schedule_id: str):
        super().__init__(
            message=f"Schedule {schedule_id} not found",
            code="SCHEDULE_NOT_FOUND",
            details={"schedule_id": schedule_id},
        )


class SessionConflictException(ConflictException):
    """Two writers inserted the same (classroom, date, start_time)."""

    def __init__(self, classroom_id: str, session_date: str, start_time: str):
        super().__init__(
            message=f"Session for classroom {classroom_id} on {session_date} at {start_time} already exists",
            code="SESSION_CONFLICT",
            details={"classroom_id": classroom_id, "date": session_date, "start_time": start_time},
        )
