# backend/classroom_scheduler/repositories/factory.py
"""
Repository Factory for the classroom scheduler

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .attendance_repository import AttendanceRepository
    from .classroom_schedule_repository import ClassroomScheduleRepository
    from .classroom_session_repository import ClassroomSessionRepository
    from .enrollment_repository import EnrollmentRepository
    from .event_outbox_repository import EventOutboxRepository
    from .schedule_break_repository import ScheduleBreakRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_classroom_schedule_repository(db: Session) -> "ClassroomScheduleRepository":
        """Create repository for recurrence rules."""
        from .classroom_schedule_repository import ClassroomScheduleRepository

        return ClassroomScheduleRepository(db)

    @staticmethod
    def create_schedule_break_repository(db: Session) -> "ScheduleBreakRepository":
        """Create repository for schedule breaks."""
        from .schedule_break_repository import ScheduleBreakRepository

        return ScheduleBreakRepository(db)

    @staticmethod
    def create_classroom_session_repository(db: Session) -> "ClassroomSessionRepository":
        """Create repository for persisted sessions."""
        from .classroom_session_repository import ClassroomSessionRepository

        return ClassroomSessionRepository(db)

    @staticmethod
    def create_attendance_repository(db: Session) -> "AttendanceRepository":
        """Create repository for attendance facts."""
        from .attendance_repository import AttendanceRepository

        return AttendanceRepository(db)

    @staticmethod
    def create_enrollment_repository(db: Session) -> "EnrollmentRepository":
        """Create repository for enrollments and student lookups."""
        from .enrollment_repository import EnrollmentRepository

        return EnrollmentRepository(db)

    @staticmethod
    def create_event_outbox_repository(db: Session) -> "EventOutboxRepository":
        """Create repository for the event outbox."""
        from .event_outbox_repository import EventOutboxRepository

        return EventOutboxRepository(db)
