# backend/classroom_scheduler/repositories/classroom_schedule_repository.py
"""
Recurrence rule store.

Rules are append-only per slot: a day/time change closes the old row's
effective window and inserts a new row. Nothing here commits.
"""

from datetime import date
import logging
from typing import Any, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import UNKNOWN_DAY
from ..core.exceptions import InvalidDayException, PersistenceException
from ..models.classroom_schedule import ClassroomSchedule
from ..services.virtual_sessions import normalize_day
from ..utils.time_helpers import normalize_time
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ClassroomScheduleRepository(BaseRepository[ClassroomSchedule]):
    def __init__(self, db: Session):
        super().__init__(db, ClassroomSchedule)

    def _active_query(self, classroom_id: str) -> Any:
        return self._build_query().filter(
            ClassroomSchedule.classroom_id == classroom_id,
            ClassroomSchedule.deleted_at.is_(None),
        )

    def get_rules(self, classroom_id: str) -> List[ClassroomSchedule]:
        """All non-deleted rule versions for a classroom, oldest window first."""
        query = self._active_query(classroom_id).order_by(
            ClassroomSchedule.effective_from.asc().nullsfirst(),
            ClassroomSchedule.day_of_week,
            ClassroomSchedule.start_time,
        )
        return self._execute_query(query)

    def get_rules_overlapping(
        self, classroom_id: str, start_date: date, end_date: date
    ) -> List[ClassroomSchedule]:
        """Rules whose effective window intersects ``start_date..end_date``."""
        query = (
            self._active_query(classroom_id)
            .filter(
                or_(
                    ClassroomSchedule.effective_from.is_(None),
                    ClassroomSchedule.effective_from <= end_date,
                ),
                or_(
                    ClassroomSchedule.effective_until.is_(None),
                    ClassroomSchedule.effective_until >= start_date,
                ),
            )
            .order_by(ClassroomSchedule.effective_from.asc().nullsfirst())
        )
        return self._execute_query(query)

    def get_rules_effective_on(self, classroom_id: str, day: date) -> List[ClassroomSchedule]:
        return self.get_rules_overlapping(classroom_id, day, day)

    def close_rule(self, schedule_id: str, effective_until: date) -> Optional[ClassroomSchedule]:
        """Retire a rule by closing its window at ``effective_until`` (inclusive)."""
        rule = self.update(schedule_id, effective_until=effective_until)
        if rule is not None:
            self.logger.info("Closed schedule %s at %s", schedule_id, effective_until)
        return rule

    def create_rule(
        self,
        *,
        classroom_id: str,
        day_of_week: Any,
        start_time: Any,
        end_time: Any,
        effective_from: Optional[date] = None,
        effective_until: Optional[date] = None,
    ) -> ClassroomSchedule:
        day = normalize_day(day_of_week)
        if day == UNKNOWN_DAY:
            raise InvalidDayException(day_of_week)
        try:
            return self.create(
                classroom_id=classroom_id,
                day_of_week=day,
                start_time=normalize_time(start_time),
                end_time=normalize_time(end_time),
                effective_from=effective_from,
                effective_until=effective_until,
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating schedule for classroom {classroom_id}: {str(e)}")
            raise PersistenceException(f"Failed to create schedule: {str(e)}")
