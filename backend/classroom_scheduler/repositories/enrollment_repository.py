# backend/classroom_scheduler/repositories/enrollment_repository.py
"""Read-only access to classroom enrollments and students."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.classroom import Classroom, ClassroomStudent, Student
from .base_repository import BaseRepository


class EnrollmentRepository(BaseRepository[ClassroomStudent]):
    def __init__(self, db: Session):
        super().__init__(db, ClassroomStudent)

    def get_enrolled_classrooms(self, student_id: str, academy_id: str) -> List[Classroom]:
        """Classrooms of ``academy_id`` the student is enrolled in."""
        query = (
            self.db.query(Classroom)
            .join(ClassroomStudent, ClassroomStudent.classroom_id == Classroom.id)
            .filter(
                ClassroomStudent.student_id == student_id,
                Classroom.academy_id == academy_id,
            )
            .order_by(Classroom.name)
        )
        return self._execute_query(query)

    def get_student_record_id(self, classroom_id: str, student_id: str) -> Optional[str]:
        enrollment = self.find_one_by(classroom_id=classroom_id, student_id=student_id)
        return enrollment.student_record_id if enrollment else None

    def find_students_by_phone_suffix(self, academy_id: str, suffix: str) -> List[Student]:
        query = (
            self.db.query(Student)
            .filter(
                Student.academy_id == academy_id,
                Student.active.is_(True),
                Student.phone.like(f"%{suffix}"),
            )
            .order_by(Student.name)
        )
        return self._execute_query(query)
