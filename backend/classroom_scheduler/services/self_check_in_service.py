# backend/classroom_scheduler/services/self_check_in_service.py
"""
Self Check-In Service for the classroom scheduler

Kiosk flow: a student identifies themselves by the last four digits of
their phone number, picks from today's sessions (stored or virtual) and
checks in. Virtual sessions are materialized on the spot.

Check-in is idempotent per (session, student). Each session is processed on
its own, so one failure shows up as an error on that result while the rest
still go through.
"""

from datetime import date, datetime
import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import PHONE_SUFFIX_LENGTH
from ..core.exceptions import DomainException, ValidationException
from ..events.check_in_events import SelfCheckInRecorded
from ..events.publisher import EventPublisher
from ..models.attendance import AttendanceStatus
from ..repositories.attendance_repository import AttendanceRepository
from ..repositories.classroom_session_repository import ClassroomSessionRepository
from ..repositories.enrollment_repository import EnrollmentRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.check_in import CheckInResult, MatchedStudent, SessionForCheckIn
from ..schemas.schedule import VirtualOccurrence
from .base import BaseService
from .session_aggregator import SessionAggregator
from .session_materializer import SessionMaterializer
from .virtual_sessions import is_virtual

logger = logging.getLogger(__name__)


class SelfCheckInService(BaseService):
    """Attendance self-service for students at the classroom door."""

    def __init__(
        self,
        db: Session,
        materializer: Optional[SessionMaterializer] = None,
        aggregator: Optional[SessionAggregator] = None,
        attendance_repository: Optional[AttendanceRepository] = None,
        enrollment_repository: Optional[EnrollmentRepository] = None,
        session_repository: Optional[ClassroomSessionRepository] = None,
        event_publisher: Optional[EventPublisher] = None,
    ):
        super().__init__(db)
        self.materializer = materializer or SessionMaterializer(db)
        self.aggregator = aggregator or SessionAggregator(db)
        self.attendance_repository = (
            attendance_repository or RepositoryFactory.create_attendance_repository(db)
        )
        self.enrollment_repository = (
            enrollment_repository or RepositoryFactory.create_enrollment_repository(db)
        )
        self.session_repository = (
            session_repository or RepositoryFactory.create_classroom_session_repository(db)
        )
        self.event_publisher = event_publisher or EventPublisher(
            RepositoryFactory.create_event_outbox_repository(db)
        )

    def find_students_by_phone_suffix(self, academy_id: str, suffix: str) -> List[MatchedStudent]:
        """Active students of the academy whose phone ends with ``suffix``."""
        cleaned = (suffix or "").strip()
        if len(cleaned) != PHONE_SUFFIX_LENGTH or not cleaned.isdigit():
            raise ValidationException(
                f"Phone suffix must be exactly {PHONE_SUFFIX_LENGTH} digits",
                code="INVALID_PHONE_SUFFIX",
            )

        students = self.enrollment_repository.find_students_by_phone_suffix(academy_id, cleaned)
        return [
            MatchedStudent(id=student.user_id, name=student.name, phone=student.phone)
            for student in students
        ]

    @BaseService.measure_operation("find_today_sessions")
    def find_today_sessions(
        self, student_id: str, academy_id: str, *, today: Optional[date] = None
    ) -> List[SessionForCheckIn]:
        """
        Today's sessions for every classroom the student is enrolled in.

        Cancelled sessions are not offered, and their slot is not refilled by
        a virtual occurrence either.
        """
        day = today or date.today()
        classrooms = self.enrollment_repository.get_enrolled_classrooms(student_id, academy_id)
        if not classrooms:
            return []

        names = {classroom.id: classroom.name for classroom in classrooms}
        stored = self.session_repository.get_sessions_for_classrooms_on(
            list(names), day, exclude_cancelled=False
        )

        sessions: List[SessionForCheckIn] = []
        for classroom_id, classroom_name in names.items():
            known = [s for s in stored if s.classroom_id == classroom_id]
            for item in self.aggregator.sessions_for_range(classroom_id, day, day, known):
                if getattr(item, "status", None) == "cancelled":
                    continue
                sessions.append(
                    SessionForCheckIn(
                        id=item.id,
                        classroom_id=classroom_id,
                        classroom_name=classroom_name or "Unknown",
                        date=item.date,
                        start_time=item.start_time,
                        end_time=item.end_time,
                        is_virtual=bool(getattr(item, "is_virtual", False)),
                    )
                )

        sessions.sort(key=lambda s: s.start_time)
        return sessions

    @BaseService.measure_operation("check_in")
    def check_in(
        self,
        person_id: str,
        person_name: str,
        sessions: Sequence[SessionForCheckIn],
        note: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[CheckInResult]:
        """
        Record attendance for each of ``sessions``.

        Args:
            person_id: Student checking in
            person_name: Display name, used for the event
            sessions: Today's sessions chosen at the kiosk
            note: Attendance note (defaults to settings.self_check_in_note)
            now: Override of the current time

        Returns:
            One CheckInResult per session, in input order

        Raises:
            ValidationException: If ``sessions`` is empty
        """
        if not sessions:
            raise ValidationException("No sessions to check into", code="NO_SESSIONS")

        moment = now or datetime.now()
        attendance_note = note if note is not None else settings.self_check_in_note
        results = [
            self._check_in_one(person_id, session, attendance_note, moment) for session in sessions
        ]

        fresh = [result for result in results if result.succeeded]
        if fresh:
            self._publish_check_in(person_id, person_name, fresh, moment)

        self.log_operation(
            "check_in",
            student_id=person_id,
            requested=len(results),
            recorded=len(fresh),
        )
        return results

    def _check_in_one(
        self,
        person_id: str,
        session: SessionForCheckIn,
        note: str,
        moment: datetime,
    ) -> CheckInResult:
        starts_at = datetime.combine(session.date, session.start_time)
        status = AttendanceStatus.PRESENT if moment <= starts_at else AttendanceStatus.LATE

        def failed(message: str, session_id: str = session.id) -> CheckInResult:
            return CheckInResult(
                session_id=session_id,
                classroom_name=session.classroom_name,
                status=status.value,
                error=message,
            )

        session_id = session.id
        if session.is_virtual or is_virtual(session.id):
            try:
                stored = self.materializer.materialize(
                    VirtualOccurrence(
                        id=session.id,
                        classroom_id=session.classroom_id,
                        date=session.date,
                        start_time=session.start_time,
                        end_time=session.end_time,
                    )
                )
            except DomainException as exc:
                self.logger.error("Failed to materialize %s: %s", session.id, exc.message)
                return failed("Failed to create session")
            session_id = stored.id

        # Lookup and insert share one write transaction, committed on every path
        existing = None
        looked_up = False
        raced = False
        try:
            with self.transaction():
                existing = self.attendance_repository.find_attendance(session_id, person_id)
                looked_up = True
                if existing is None:
                    record_id = self.enrollment_repository.get_student_record_id(
                        session.classroom_id, person_id
                    )
                    try:
                        with self.attendance_repository.savepoint():
                            self.attendance_repository.insert_attendance(
                                classroom_session_id=session_id,
                                student_id=person_id,
                                student_record_id=record_id,
                                status=status.value,
                                note=note,
                            )
                    except IntegrityError:
                        raced = True
                        existing = self.attendance_repository.find_attendance(session_id, person_id)
        except DomainException as exc:
            if not looked_up:
                self.logger.error("Failed to read attendance for %s: %s", session_id, exc.message)
                return failed("Failed to check attendance status", session_id)
            self.logger.error("Failed to record attendance for %s: %s", session_id, exc.message)
            return failed("Failed to record attendance", session_id)

        if existing is not None:
            return CheckInResult(
                session_id=session_id,
                classroom_name=session.classroom_name,
                status=existing.status,
                already_checked_in=True,
            )
        if raced:
            return failed("Failed to record attendance", session_id)

        return CheckInResult(
            session_id=session_id,
            classroom_name=session.classroom_name,
            status=status.value,
        )

    def _publish_check_in(
        self,
        person_id: str,
        person_name: str,
        fresh: Sequence[CheckInResult],
        moment: datetime,
    ) -> None:
        event = SelfCheckInRecorded(
            student_id=person_id,
            student_name=person_name,
            occurred_at=moment,
            classroom_names=[result.classroom_name for result in fresh],
            statuses=[result.status for result in fresh],
        )
        try:
            with self.transaction():
                self.event_publisher.publish(event)
        except Exception as exc:
            # Attendance is already committed; a lost event must not undo it
            self.logger.error("Failed to publish SelfCheckInRecorded for %s: %s", person_id, exc)
