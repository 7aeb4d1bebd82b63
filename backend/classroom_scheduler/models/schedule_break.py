# backend/classroom_scheduler/models/schedule_break.py
"""Date ranges during which a classroom generates no sessions (holidays, exams)."""

from datetime import date

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ScheduleBreak(Base):
    """Closed date range excluded from recurrence expansion."""

    __tablename__ = "schedule_breaks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    classroom_id = Column(String(36), ForeignKey("classrooms.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_schedule_breaks_range"),
        Index("idx_schedule_breaks_classroom_start", "classroom_id", "start_date"),
    )

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def __repr__(self) -> str:
        return f"<ScheduleBreak {self.start_date}..{self.end_date} - {self.reason or 'No reason'}>"
