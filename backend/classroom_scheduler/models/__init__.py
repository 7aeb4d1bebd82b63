"""
Database models for the classroom scheduler.

- Recurrence rules and breaks (what the calendar should look like)
- Persisted sessions and attendance (what actually happened)
- Classroom/enrollment/student rows owned by the academy application
- Event outbox for downstream notifications
"""

from .attendance import Attendance, AttendanceStatus
from .classroom import Classroom, ClassroomStudent, Student
from .classroom_schedule import ClassroomSchedule
from .classroom_session import ClassroomSession, SessionStatus
from .event_outbox import EventOutbox
from .schedule_break import ScheduleBreak

__all__ = [
    "Attendance",
    "AttendanceStatus",
    "Classroom",
    "ClassroomSchedule",
    "ClassroomSession",
    "ClassroomStudent",
    "EventOutbox",
    "ScheduleBreak",
    "SessionStatus",
    "Student",
]
