# backend/classroom_scheduler/repositories/attendance_repository.py
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models.attendance import Attendance
from .base_repository import BaseRepository


class AttendanceRepository(BaseRepository[Attendance]):
    def __init__(self, db: Session):
        super().__init__(db, Attendance)

    def find_attendance(self, session_id: str, student_id: str) -> Optional[Attendance]:
        query = self._build_query().filter(
            Attendance.classroom_session_id == session_id,
            Attendance.student_id == student_id,
        )
        return self._execute_first(query)

    def insert_attendance(self, **fields: Any) -> Attendance:
        """Insert one attendance fact; IntegrityError surfaces on a duplicate (session, student)."""
        return self.create(**fields)
