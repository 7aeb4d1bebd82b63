# backend/tests/services/test_self_check_in_service.py
"""
Tests for SelfCheckInService.

Tests cover:
- Late/present status relative to the session start
- Materialization of virtual sessions on check-in
- One attendance fact per (session, student)
- Per-session failures and event publishing
"""

from datetime import date, datetime, time
import json
from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from classroom_scheduler.core.config import settings
from classroom_scheduler.core.exceptions import PersistenceException, ValidationException
from classroom_scheduler.events.publisher import EventPublisher
from classroom_scheduler.models import Attendance, ClassroomSession, EventOutbox
from classroom_scheduler.schemas.check_in import SessionForCheckIn
from classroom_scheduler.services.self_check_in_service import SelfCheckInService
from classroom_scheduler.services.session_materializer import SessionMaterializer

MONDAY = date(2024, 1, 8)


def _virtual_session(start: time = time(9, 0)) -> SessionForCheckIn:
    return SessionForCheckIn(
        id=f"virtual-C1-{MONDAY.isoformat()}-{start.strftime('%H:%M')}",
        classroom_id="C1",
        classroom_name="Beginner Piano",
        date=MONDAY,
        start_time=start,
        end_time=time(start.hour + 1, start.minute),
        is_virtual=True,
    )


class TestCheckIn:
    def test_late_check_in_materializes_virtual_session(self, db, classroom, enrolled_student):
        service = SelfCheckInService(db)

        [result] = service.check_in(
            enrolled_student.user_id,
            enrolled_student.name,
            [_virtual_session()],
            now=datetime(2024, 1, 8, 9, 5),
        )

        stored = db.query(ClassroomSession).one()
        attendance = db.query(Attendance).one()
        assert result.status == "late"
        assert result.already_checked_in is False
        assert result.error is None
        assert result.session_id == stored.id
        assert stored.date == MONDAY
        assert stored.start_time == time(9, 0)
        assert attendance.classroom_session_id == stored.id
        assert attendance.status == "late"
        assert attendance.student_record_id == "REC-001"
        assert attendance.note == settings.self_check_in_note

    def test_on_time_is_present(self, db, classroom, enrolled_student):
        [result] = SelfCheckInService(db).check_in(
            enrolled_student.user_id,
            enrolled_student.name,
            [_virtual_session()],
            note="Front desk",
            now=datetime(2024, 1, 8, 9, 0),
        )

        assert result.status == "present"
        assert db.query(Attendance).one().note == "Front desk"

    def test_second_check_in_reports_already_checked_in(self, db, classroom, enrolled_student):
        service = SelfCheckInService(db)
        service.check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 55)
        )

        [second] = service.check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 9, 20)
        )

        assert second.already_checked_in is True
        assert second.status == "present"
        assert db.query(Attendance).count() == 1
        assert db.query(ClassroomSession).count() == 1

    def test_persisted_session_used_directly(self, db, classroom, enrolled_student):
        stored = ClassroomSession(
            classroom_id="C1", date=MONDAY, start_time=time(14, 0), end_time=time(15, 0), status="scheduled"
        )
        db.add(stored)
        db.flush()
        session = SessionForCheckIn(
            id=stored.id, classroom_id="C1", date=MONDAY, start_time=time(14, 0), end_time=time(15, 0)
        )

        [result] = SelfCheckInService(db).check_in(
            enrolled_student.user_id, enrolled_student.name, [session], now=datetime(2024, 1, 8, 13, 0)
        )

        assert result.session_id == stored.id
        assert result.classroom_name == "Unknown"
        assert db.query(ClassroomSession).count() == 1

    def test_empty_input_rejected(self, db):
        with pytest.raises(ValidationException, match="No sessions to check into"):
            SelfCheckInService(db).check_in("S1", "Someone", [])

    def test_one_failure_does_not_abort_the_rest(self, db, classroom, enrolled_student):
        materializer = SessionMaterializer(db)
        real_materialize = materializer.materialize

        def flaky(occurrence, overrides=None):
            if occurrence.start_time == time(9, 0):
                raise PersistenceException("down")
            return real_materialize(occurrence, overrides)

        service = SelfCheckInService(db, materializer=materializer)
        with patch.object(materializer, "materialize", side_effect=flaky):
            results = service.check_in(
                enrolled_student.user_id,
                enrolled_student.name,
                [_virtual_session(time(9, 0)), _virtual_session(time(14, 0))],
                now=datetime(2024, 1, 8, 8, 0),
            )

        assert results[0].error == "Failed to create session"
        assert results[0].session_id == "virtual-C1-2024-01-08-09:00"
        assert results[1].error is None
        assert results[1].status == "present"
        assert db.query(Attendance).count() == 1

    def test_attendance_race_reported_as_already_checked_in(self, db, classroom, enrolled_student):
        service = SelfCheckInService(db)
        service.check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 0)
        )
        real_find = service.attendance_repository.find_attendance
        session_id = db.query(ClassroomSession).one().id
        winner = real_find(session_id, enrolled_student.user_id)

        with patch.object(service.attendance_repository, "find_attendance", side_effect=[None, winner]):
            [result] = service.check_in(
                enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 9, 30)
            )

        assert result.already_checked_in is True
        assert result.status == "present"
        assert db.query(Attendance).count() == 1

    def test_attendance_write_failure_is_per_item(self, db, classroom, enrolled_student):
        service = SelfCheckInService(db)
        with patch.object(
            service.attendance_repository, "insert_attendance", side_effect=PersistenceException("down")
        ):
            [result] = service.check_in(
                enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 0)
            )

        assert result.error == "Failed to record attendance"
        assert db.query(Attendance).count() == 0


    def test_attendance_lookup_failure_is_per_item(self, db, classroom, enrolled_student):
        service = SelfCheckInService(db)
        with patch.object(
            service.attendance_repository, "find_attendance", side_effect=PersistenceException("down")
        ):
            [result] = service.check_in(
                enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 0)
            )

        assert result.error == "Failed to check attendance status"
        assert db.query(ClassroomSession).count() == 1
        assert db.query(Attendance).count() == 0


class TestCheckInEvents:
    def test_event_written_to_outbox(self, db, classroom, enrolled_student):
        SelfCheckInService(db).check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 9, 5)
        )

        row = db.query(EventOutbox).one()
        payload = json.loads(row.payload)
        assert row.event_type == "event:SelfCheckInRecorded"
        assert payload["student_id"] == enrolled_student.user_id
        assert payload["classroom_names"] == ["Beginner Piano"]
        assert payload["statuses"] == ["late"]
        assert payload["occurred_at"] == "2024-01-08T09:05:00"

    def test_no_event_when_nothing_new(self, db, classroom, enrolled_student):
        service = SelfCheckInService(db)
        service.check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 0)
        )
        service.check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 1)
        )

        assert db.query(EventOutbox).count() == 1

    def test_publisher_failure_is_swallowed(self, db, classroom, enrolled_student):
        publisher = Mock(spec=EventPublisher)
        publisher.publish.side_effect = IntegrityError("INSERT", {}, Exception("outbox down"))

        [result] = SelfCheckInService(db, event_publisher=publisher).check_in(
            enrolled_student.user_id, enrolled_student.name, [_virtual_session()], now=datetime(2024, 1, 8, 8, 0)
        )

        assert result.succeeded
        assert db.query(Attendance).count() == 1
        publisher.publish.assert_called_once()


class TestFindTodaySessions:
    def test_combines_persisted_and_virtual(self, db, classroom, enrolled_student, academy_id, make_rule):
        make_rule(start_time=time(16, 0), end_time=time(17, 0))
        db.add(
            ClassroomSession(
                classroom_id="C1", date=MONDAY, start_time=time(9, 0), end_time=time(10, 0), status="scheduled"
            )
        )
        db.flush()

        sessions = SelfCheckInService(db).find_today_sessions(enrolled_student.user_id, academy_id, today=MONDAY)

        assert [(s.start_time, s.is_virtual) for s in sessions] == [(time(9, 0), False), (time(16, 0), True)]
        assert all(s.classroom_name == "Beginner Piano" for s in sessions)

    def test_cancelled_slot_not_offered(self, db, classroom, enrolled_student, academy_id, make_rule):
        make_rule()
        db.add(
            ClassroomSession(
                classroom_id="C1", date=MONDAY, start_time=time(9, 0), end_time=time(10, 0), status="cancelled"
            )
        )
        db.flush()

        assert SelfCheckInService(db).find_today_sessions(enrolled_student.user_id, academy_id, today=MONDAY) == []

    def test_not_enrolled(self, db, classroom, academy_id):
        assert SelfCheckInService(db).find_today_sessions("nobody", academy_id, today=MONDAY) == []


class TestPhoneSuffixLookup:
    def test_matches_active_students(self, db, enrolled_student, academy_id):
        [match] = SelfCheckInService(db).find_students_by_phone_suffix(academy_id, "1234")

        assert match.id == enrolled_student.user_id
        assert match.name == "Mina Park"

    @pytest.mark.parametrize("suffix", ["123", "12345", "12a4", ""])
    def test_suffix_must_be_four_digits(self, db, suffix):
        with pytest.raises(ValidationException):
            SelfCheckInService(db).find_students_by_phone_suffix("A1", suffix)
