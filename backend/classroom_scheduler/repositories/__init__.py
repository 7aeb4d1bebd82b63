"""
Repository layer for the classroom scheduler.

Repositories own all SQL; services own transactions.
"""

from .attendance_repository import AttendanceRepository
from .base_repository import BaseRepository
from .classroom_schedule_repository import ClassroomScheduleRepository
from .classroom_session_repository import ClassroomSessionRepository
from .enrollment_repository import EnrollmentRepository
from .event_outbox_repository import EventOutboxRepository
from .factory import RepositoryFactory
from .schedule_break_repository import ScheduleBreakRepository

__all__ = [
    "AttendanceRepository",
    "BaseRepository",
    "ClassroomScheduleRepository",
    "ClassroomSessionRepository",
    "EnrollmentRepository",
    "EventOutboxRepository",
    "RepositoryFactory",
    "ScheduleBreakRepository",
]
