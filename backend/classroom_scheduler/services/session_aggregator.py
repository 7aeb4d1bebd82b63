# backend/classroom_scheduler/services/session_aggregator.py
"""
Session Aggregator for the classroom scheduler

Merges persisted sessions with virtual occurrences into one view. A
persisted session always wins over the virtual occurrence at the same
(classroom, date, HH:MM) slot.

The view degrades instead of failing: if the rules cannot be read only
persisted sessions are returned, and if the breaks cannot be read the
expansion proceeds as if there were none.
"""

from datetime import date
import logging
from typing import Any, List, Optional, Sequence, Set, Union

from sqlalchemy.orm import Session

from ..core.exceptions import PersistenceException
from ..models.classroom_session import ClassroomSession
from ..repositories.classroom_schedule_repository import ClassroomScheduleRepository
from ..repositories.classroom_session_repository import ClassroomSessionRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.schedule_break_repository import ScheduleBreakRepository
from ..schemas.schedule import VirtualOccurrence
from ..utils.time_helpers import normalize_time
from .base import BaseService
from .virtual_sessions import SessionKey, expand, session_key

logger = logging.getLogger(__name__)

AggregatedSession = Union[ClassroomSession, VirtualOccurrence]


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


class SessionAggregator(BaseService):
    """Read-side merge of stored sessions and rule expansion."""

    def __init__(
        self,
        db: Session,
        schedule_repository: Optional[ClassroomScheduleRepository] = None,
        break_repository: Optional[ScheduleBreakRepository] = None,
        session_repository: Optional[ClassroomSessionRepository] = None,
    ):
        super().__init__(db)
        self.schedule_repository = (
            schedule_repository or RepositoryFactory.create_classroom_schedule_repository(db)
        )
        self.break_repository = (
            break_repository or RepositoryFactory.create_schedule_break_repository(db)
        )
        self.session_repository = (
            session_repository or RepositoryFactory.create_classroom_session_repository(db)
        )

    def sessions_for_range(
        self,
        classroom_id: str,
        start_date: date,
        end_date: date,
        known_sessions: Sequence[Any],
    ) -> List[Any]:
        """
        Persisted sessions followed by the virtual occurrences they do not cover.

        Args:
            classroom_id: Classroom to expand
            start_date: First date of the window (inclusive)
            end_date: Last date of the window (inclusive)
            known_sessions: Persisted sessions already loaded by the caller
                (ORM rows or plain dicts). Soft-deleted rows are dropped.

        Returns:
            The persisted sessions in their given order, then the remaining
            virtual occurrences in expansion order
        """
        persisted = [s for s in known_sessions if _field(s, "deleted_at") is None]

        try:
            rules = self.schedule_repository.get_rules_overlapping(classroom_id, start_date, end_date)
        except PersistenceException as exc:
            self.logger.warning(
                "Schedule rules unavailable for classroom %s, returning persisted sessions only: %s",
                classroom_id,
                exc.message,
            )
            return persisted

        try:
            breaks = self.break_repository.get_breaks(classroom_id)
        except PersistenceException as exc:
            self.logger.warning(
                "Schedule breaks unavailable for classroom %s, expanding without breaks: %s",
                classroom_id,
                exc.message,
            )
            breaks = []

        taken: Set[SessionKey] = {
            session_key(_field(s, "classroom_id"), _field(s, "date"), _field(s, "start_time"))
            for s in persisted
        }
        virtual = [
            occurrence
            for occurrence in expand(classroom_id, rules, breaks, start_date, end_date)
            if session_key(occurrence.classroom_id, occurrence.date, occurrence.start_time)
            not in taken
        ]
        return [*persisted, *virtual]

    @BaseService.measure_operation("get_sessions_for_range")
    def get_sessions_for_range(
        self, classroom_id: str, start_date: date, end_date: date
    ) -> List[AggregatedSession]:
        """Load persisted sessions for the window, merge, and sort for display."""
        persisted = self.session_repository.get_sessions_in_range(classroom_id, start_date, end_date)
        merged = self.sessions_for_range(classroom_id, start_date, end_date, persisted)
        return self.sorted_for_display(merged)

    @staticmethod
    def sorted_for_display(sessions: Sequence[Any]) -> List[Any]:
        """Stable sort by (date, start time)."""
        return sorted(
            sessions,
            key=lambda s: (_field(s, "date"), normalize_time(_field(s, "start_time"))),
        )
