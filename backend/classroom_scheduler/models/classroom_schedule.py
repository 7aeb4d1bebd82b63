# backend/classroom_scheduler/models/classroom_schedule.py
"""
Recurrence rule model.

A ClassroomSchedule row is one weekly time slot of a classroom ("every
Monday 09:00-10:00") together with the date window in which it applies.

Rules are never edited in place when their day or time changes: the old row
is closed by setting ``effective_until`` and a new row is opened, so the
meaning of historical dates never changes. ``deleted_at`` is reserved for
true data corrections.
"""

from datetime import date
import logging

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Time
from sqlalchemy.sql import func
import ulid

from ..core.constants import EFFECTIVE_FROM_MIN, EFFECTIVE_UNTIL_MAX
from ..database import Base

logger = logging.getLogger(__name__)


class ClassroomSchedule(Base):
    """Weekly recurrence rule with an inclusive effective date window."""

    __tablename__ = "classroom_schedules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=False)

    # 0 = Sunday .. 6 = Saturday
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    effective_from = Column(Date, nullable=True)
    effective_until = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_classroom_schedules_day"),
        Index("idx_classroom_schedules_classroom_day", "classroom_id", "day_of_week"),
    )

    def is_effective_on(self, day: date) -> bool:
        """Whether ``day`` falls inside this rule's window (open ends are unbounded)."""
        starts = self.effective_from or EFFECTIVE_FROM_MIN
        ends = self.effective_until or EFFECTIVE_UNTIL_MAX
        return starts <= day <= ends

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None and self.effective_until is None

    def __repr__(self) -> str:
        return (
            f"<ClassroomSchedule {self.classroom_id} day={self.day_of_week} "
            f"{self.start_time}-{self.end_time} [{self.effective_from}..{self.effective_until}]>"
        )
