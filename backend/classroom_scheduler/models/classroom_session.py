# backend/classroom_scheduler/models/classroom_session.py
"""
Persisted classroom session model.

A ClassroomSession is a concrete occurrence stored in the database, created
either directly by a teacher or by materializing a virtual occurrence of a
recurrence rule. Attendance rows point at sessions by id, so sessions are
soft-deleted only.

Uniqueness: at most one non-deleted row per (classroom_id, date, start_time).
The partial unique index below is what the materializer relies on to resolve
concurrent inserts of the same occurrence.
"""

from enum import Enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Text, Time, text
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SessionStatus(str, Enum):
    """Session lifecycle statuses."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_SLOT_INDEX = "uq_classroom_sessions_active_slot"
ACTIVE_SLOT_COLUMNS = ("classroom_id", "date", "start_time")
ACTIVE_SLOT_WHERE = "deleted_at IS NULL"


class ClassroomSession(Base):
    """Concrete session of a classroom on a date."""

    __tablename__ = "classroom_sessions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=False)

    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value)
    location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    substitute_teacher = Column(String(36), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            ACTIVE_SLOT_INDEX,
            *ACTIVE_SLOT_COLUMNS,
            unique=True,
            postgresql_where=text(ACTIVE_SLOT_WHERE),
            sqlite_where=text(ACTIVE_SLOT_WHERE),
        ),
    )

    is_virtual = False

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<ClassroomSession {self.classroom_id} {self.date} {self.start_time} {self.status}>"
