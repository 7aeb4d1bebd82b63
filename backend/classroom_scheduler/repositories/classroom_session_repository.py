# backend/classroom_scheduler/repositories/classroom_session_repository.py
"""
Persisted session store.

Lookups compare start times at minute precision so rows written with
seconds (09:00:00 vs 09:00:30) still match the HH:MM coordinates of a
virtual occurrence.
"""

from datetime import date, datetime, time
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import PersistenceException
from ..core.ulid_helper import generate_ulid
from ..database.session_utils import dialect_insert
from ..models.classroom_session import (
    ACTIVE_SLOT_COLUMNS,
    ACTIVE_SLOT_WHERE,
    ClassroomSession,
    SessionStatus,
)
from ..utils.time_helpers import TimeLike, normalize_time
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _minute_bounds(value: TimeLike) -> tuple[time, time]:
    start = normalize_time(value)
    return start, start.replace(second=59, microsecond=999999)


class ClassroomSessionRepository(BaseRepository[ClassroomSession]):
    def __init__(self, db: Session):
        super().__init__(db, ClassroomSession)

    def find_session(
        self, classroom_id: str, session_date: date, start_time: TimeLike
    ) -> Optional[ClassroomSession]:
        """The non-deleted session at (classroom, date, HH:MM), if any."""
        lower, upper = _minute_bounds(start_time)
        query = self._build_query().filter(
            ClassroomSession.classroom_id == classroom_id,
            ClassroomSession.date == session_date,
            ClassroomSession.start_time >= lower,
            ClassroomSession.start_time <= upper,
            ClassroomSession.deleted_at.is_(None),
        )
        return self._execute_first(query)

    def insert_session(self, **fields: Any) -> ClassroomSession:
        """
        Insert one session row.

        Raises IntegrityError (unwrapped) when the active-slot index rejects a
        duplicate, so the materializer can treat it as a lost race.
        """
        fields["start_time"] = normalize_time(fields["start_time"])
        fields["end_time"] = normalize_time(fields["end_time"])
        fields.setdefault("status", SessionStatus.SCHEDULED.value)
        return self.create(**fields)

    def bulk_upsert_sessions(
        self,
        rows: Sequence[Dict[str, Any]],
        conflict_keys: Sequence[str] = ACTIVE_SLOT_COLUMNS,
        ignore_duplicates: bool = True,
        batch_size: Optional[int] = None,
    ) -> int:
        """
        INSERT .. ON CONFLICT over the active-slot index.

        With ``ignore_duplicates`` existing rows are left untouched (DO NOTHING);
        otherwise their non-key columns are overwritten. Returns the number of
        rows submitted.
        """
        if not rows:
            return 0

        size = batch_size or settings.bulk_upsert_batch_size
        prepared: List[Dict[str, Any]] = []
        for row in rows:
            item = dict(row)
            item.setdefault("id", generate_ulid())
            item.setdefault("status", SessionStatus.SCHEDULED.value)
            item["start_time"] = normalize_time(item["start_time"])
            item["end_time"] = normalize_time(item["end_time"])
            prepared.append(item)

        table = ClassroomSession.__table__
        try:
            for chunk_start in range(0, len(prepared), size):
                chunk = prepared[chunk_start : chunk_start + size]
                stmt = dialect_insert(self.db, table).values(chunk)
                if ignore_duplicates:
                    stmt = stmt.on_conflict_do_nothing(
                        index_elements=list(conflict_keys),
                        index_where=text(ACTIVE_SLOT_WHERE),
                    )
                else:
                    updatable = [
                        key for key in chunk[0].keys() if key not in conflict_keys and key != "id"
                    ]
                    stmt = stmt.on_conflict_do_update(
                        index_elements=list(conflict_keys),
                        index_where=text(ACTIVE_SLOT_WHERE),
                        set_={key: stmt.excluded[key] for key in updatable},
                    )
                self.db.execute(stmt)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error bulk upserting sessions: {str(e)}")
            raise PersistenceException(f"Failed to bulk upsert sessions: {str(e)}")

        self.logger.info("Bulk upserted %d session rows (ignore_duplicates=%s)", len(prepared), ignore_duplicates)
        return len(prepared)

    def get_sessions_in_range(
        self,
        classroom_id: str,
        start_date: date,
        end_date: date,
        *,
        include_deleted: bool = False,
    ) -> List[ClassroomSession]:
        query = self._build_query().filter(
            ClassroomSession.classroom_id == classroom_id,
            ClassroomSession.date >= start_date,
            ClassroomSession.date <= end_date,
        )
        if not include_deleted:
            query = query.filter(ClassroomSession.deleted_at.is_(None))
        query = query.order_by(ClassroomSession.date, ClassroomSession.start_time)
        return self._execute_query(query)

    def get_sessions_for_classrooms_on(
        self,
        classroom_ids: Sequence[str],
        day: date,
        *,
        exclude_cancelled: bool = True,
    ) -> List[ClassroomSession]:
        if not classroom_ids:
            return []
        query = self._build_query().filter(
            ClassroomSession.classroom_id.in_(list(classroom_ids)),
            ClassroomSession.date == day,
            ClassroomSession.deleted_at.is_(None),
        )
        if exclude_cancelled:
            query = query.filter(ClassroomSession.status != SessionStatus.CANCELLED.value)
        query = query.order_by(ClassroomSession.start_time)
        return self._execute_query(query)

    def soft_delete(self, session_id: str, when: Optional[datetime] = None) -> Optional[ClassroomSession]:
        return self.update(session_id, deleted_at=when or datetime.now())
