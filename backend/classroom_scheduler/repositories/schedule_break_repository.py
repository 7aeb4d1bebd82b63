# backend/classroom_scheduler/repositories/schedule_break_repository.py
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import PersistenceException
from ..models.schedule_break import ScheduleBreak
from .base_repository import BaseRepository


class ScheduleBreakRepository(BaseRepository[ScheduleBreak]):
    def __init__(self, db: Session):
        super().__init__(db, ScheduleBreak)

    def get_breaks(self, classroom_id: str) -> List[ScheduleBreak]:
        query = (
            self._build_query()
            .filter(ScheduleBreak.classroom_id == classroom_id)
            .order_by(ScheduleBreak.start_date)
        )
        return self._execute_query(query)

    def create_break(
        self,
        classroom_id: str,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> ScheduleBreak:
        try:
            return self.create(
                classroom_id=classroom_id,
                start_date=start_date,
                end_date=end_date,
                reason=reason,
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating break for classroom {classroom_id}: {str(e)}")
            raise PersistenceException(f"Failed to create schedule break: {str(e)}")
