# backend/classroom_scheduler/models/classroom.py
"""
Classroom, enrollment and student rows.

These tables belong to the wider academy application; the scheduler only
reads them (classroom names, who is enrolled where, phone lookups for the
self check-in kiosk).
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Classroom(Base):
    __tablename__ = "classrooms"

    id = Column(String(36), primary_key=True, default=lambda: str(ulid.ULID()))
    academy_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    enrollments = relationship("ClassroomStudent", back_populates="classroom")

    def __repr__(self) -> str:
        return f"<Classroom {self.name}>"


class Student(Base):
    __tablename__ = "students"

    user_id = Column(String(36), primary_key=True)
    academy_id = Column(String(36), nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_students_academy_active", "academy_id", "active"),)


class ClassroomStudent(Base):
    """Enrollment of a student in a classroom."""

    __tablename__ = "classroom_students"

    classroom_id = Column(String(36), ForeignKey("classrooms.id"), primary_key=True)
    student_id = Column(String(36), primary_key=True)
    student_record_id = Column(String(36), nullable=True)

    classroom = relationship("Classroom", back_populates="enrollments")
