# backend/classroom_scheduler/services/session_materializer.py
"""
Session Materializer for the classroom scheduler

Turns virtual occurrences into persisted ClassroomSession rows. Every entry
point is idempotent: materializing an occurrence that is already stored
returns the stored row, and two callers racing to materialize the same
occurrence converge on one row.

Race handling: the insert runs inside a SAVEPOINT against the partial unique
index on (classroom_id, date, start_time). A loser gets an IntegrityError,
rolls back to the savepoint and re-reads the winner's row.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    NotFoundException,
    PersistenceException,
    SessionConflictException,
    ValidationException,
)
from ..models.classroom_session import ClassroomSession, SessionStatus
from ..repositories.classroom_schedule_repository import ClassroomScheduleRepository
from ..repositories.classroom_session_repository import ClassroomSessionRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.schedule_break_repository import ScheduleBreakRepository
from ..schemas.schedule import MaterializeOverrides, VirtualOccurrence
from ..utils.time_helpers import time_to_string
from .base import BaseService
from .virtual_sessions import SessionKey, expand, parse_virtual_id, session_key


OverridesInput = Union[MaterializeOverrides, Mapping[str, Any], None]


def _coerce_overrides(overrides: OverridesInput) -> MaterializeOverrides:
    if overrides is None:
        return MaterializeOverrides()
    if isinstance(overrides, MaterializeOverrides):
        return overrides
    return MaterializeOverrides.model_validate(dict(overrides))


class SessionMaterializer(BaseService):
    """Idempotent conversion of virtual occurrences into stored sessions."""

    def __init__(
        self,
        db: Session,
        session_repository: Optional[ClassroomSessionRepository] = None,
        schedule_repository: Optional[ClassroomScheduleRepository] = None,
        break_repository: Optional[ScheduleBreakRepository] = None,
    ):
        super().__init__(db)
        self.session_repository = (
            session_repository or RepositoryFactory.create_classroom_session_repository(db)
        )
        self.schedule_repository = (
            schedule_repository or RepositoryFactory.create_classroom_schedule_repository(db)
        )
        self.break_repository = (
            break_repository or RepositoryFactory.create_schedule_break_repository(db)
        )

    def build_session_fields(
        self, occurrence: VirtualOccurrence, overrides: OverridesInput = None
    ) -> Dict[str, Any]:
        """Column values for the row that would represent ``occurrence``."""
        extra = _coerce_overrides(overrides)
        status = extra.status.value if extra.status else SessionStatus.SCHEDULED.value
        return {
            "classroom_id": occurrence.classroom_id,
            "date": occurrence.date,
            "start_time": occurrence.start_time,
            "end_time": occurrence.end_time,
            "status": status,
            "location": extra.location or occurrence.location or settings.default_session_location,
            "notes": extra.notes or occurrence.notes,
            "substitute_teacher": extra.substitute_teacher or occurrence.substitute_teacher,
        }

    @BaseService.measure_operation("materialize")
    def materialize(
        self, occurrence: VirtualOccurrence, overrides: OverridesInput = None
    ) -> ClassroomSession:
        """
        Persist ``occurrence`` unless a live row already exists for its slot.

        Args:
            occurrence: The virtual occurrence to persist
            overrides: Optional status/location/notes/substitute_teacher

        Returns:
            The existing or newly created session

        Raises:
            PersistenceException: If the store fails
        """
        with self.transaction():
            existing = self.session_repository.find_session(
                occurrence.classroom_id, occurrence.date, occurrence.start_time
            )
            if existing is not None:
                return existing

            fields = self.build_session_fields(occurrence, overrides)
            try:
                with self.session_repository.savepoint():
                    created = self.session_repository.insert_session(**fields)
            except IntegrityError as exc:
                return self._resolve_lost_race(occurrence, exc)

            self.log_operation(
                "materialize",
                classroom_id=occurrence.classroom_id,
                session_id=created.id,
                date=occurrence.date.isoformat(),
            )
            return created

    def _resolve_lost_race(
        self, occurrence: VirtualOccurrence, exc: IntegrityError
    ) -> ClassroomSession:
        conflict = SessionConflictException(
            occurrence.classroom_id,
            occurrence.date.isoformat(),
            time_to_string(occurrence.start_time),
        )
        self.logger.info("Materialization race resolved by re-fetch: %s", conflict.message)
        winner = self.session_repository.find_session(
            occurrence.classroom_id, occurrence.date, occurrence.start_time
        )
        if winner is None:
            # Integrity error for some other reason (e.g. missing classroom row)
            raise PersistenceException(
                f"Failed to materialize session: {exc.orig}",
                details=conflict.details,
            ) from exc
        return winner

    @BaseService.measure_operation("materialize_by_id")
    def materialize_by_id(
        self, virtual_session_id: str, overrides: OverridesInput = None
    ) -> ClassroomSession:
        """
        Materialize the occurrence named by a virtual session id.

        The end time is recovered by re-expanding the classroom's rules for
        that single date.
        """
        key = parse_virtual_id(virtual_session_id)
        if key is None:
            raise ValidationException(
                f"{virtual_session_id!r} is not a virtual session id",
                code="INVALID_VIRTUAL_ID",
            )

        occurrence = self.find_occurrence(key.classroom_id, key.date, virtual_session_id)
        if occurrence is None:
            raise NotFoundException(
                f"No schedule produces session {virtual_session_id}",
                code="VIRTUAL_SESSION_NOT_FOUND",
                details={"virtual_session_id": virtual_session_id},
            )
        return self.materialize(occurrence, overrides)

    def find_occurrence(
        self, classroom_id: str, day: date, virtual_session_id: str
    ) -> Optional[VirtualOccurrence]:
        rules = self.schedule_repository.get_rules_effective_on(classroom_id, day)
        breaks = self.break_repository.get_breaks(classroom_id)
        for occurrence in expand(classroom_id, rules, breaks, day, day):
            if occurrence.id == virtual_session_id:
                return occurrence
        return None

    @BaseService.measure_operation("bulk_materialize")
    def bulk_materialize(
        self,
        occurrences: Iterable[VirtualOccurrence],
        overrides: OverridesInput = None,
    ) -> int:
        """
        Persist many occurrences at once, skipping slots that already have a row.

        A slot counts as taken when a live session exists at the same
        (classroom, date, HH:MM), whatever its seconds. Returns the number of
        occurrences submitted. Safe to retry.
        """
        submitted = list(occurrences)
        if not submitted:
            return 0

        with self.transaction():
            pending = self._uncovered(submitted)
            rows: List[Dict[str, Any]] = [
                self.build_session_fields(occurrence, overrides) for occurrence in pending
            ]
            if rows:
                self.session_repository.bulk_upsert_sessions(rows, ignore_duplicates=True)

        self.log_operation(
            "bulk_materialize",
            submitted=len(submitted),
            skipped=len(submitted) - len(rows),
        )
        return len(submitted)

    def _uncovered(self, occurrences: List[VirtualOccurrence]) -> List[VirtualOccurrence]:
        by_classroom: Dict[str, List[date]] = {}
        for occurrence in occurrences:
            by_classroom.setdefault(occurrence.classroom_id, []).append(occurrence.date)

        taken: Set[SessionKey] = set()
        for classroom_id, days in by_classroom.items():
            for stored in self.session_repository.get_sessions_in_range(classroom_id, min(days), max(days)):
                taken.add(session_key(stored.classroom_id, stored.date, stored.start_time))

        pending: List[VirtualOccurrence] = []
        for occurrence in occurrences:
            key = session_key(occurrence.classroom_id, occurrence.date, occurrence.start_time)
            if key in taken:
                continue
            taken.add(key)
            pending.append(occurrence)
        return pending
