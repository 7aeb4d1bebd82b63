# backend/classroom_scheduler/models/attendance.py
"""Attendance facts: one row per (session, student)."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    EXCUSED = "excused"


class Attendance(Base):
    """Attendance of one student at one persisted session."""

    __tablename__ = "attendance"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    classroom_session_id = Column(
        String(26), ForeignKey("classroom_sessions.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(String(36), nullable=False, index=True)
    student_record_id = Column(String(36), nullable=True)
    status = Column(String(20), nullable=False, default=AttendanceStatus.PRESENT.value)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    session = relationship("ClassroomSession")

    __table_args__ = (
        UniqueConstraint("classroom_session_id", "student_id", name="uq_attendance_session_student"),
    )

    def __repr__(self) -> str:
        return f"<Attendance session={self.classroom_session_id} student={self.student_id} {self.status}>"
