# backend/tests/services/test_session_materializer.py
"""
Tests for SessionMaterializer.

Covers idempotency, convergence of a lost insert race on the winning row,
defaulting of optional columns, lookup by virtual id and the bulk variant.
"""

from datetime import date, time
from unittest.mock import patch

import pytest

from classroom_scheduler.core.config import settings
from classroom_scheduler.core.exceptions import NotFoundException, PersistenceException, ValidationException
from classroom_scheduler.models import ClassroomSession
from classroom_scheduler.schemas.schedule import MaterializeOverrides, VirtualOccurrence
from classroom_scheduler.services.session_materializer import SessionMaterializer
from classroom_scheduler.services.virtual_sessions import virtual_id


def _occurrence(day: date = date(2024, 1, 8), start: str = "09:00", end: str = "10:00") -> VirtualOccurrence:
    return VirtualOccurrence(
        id=virtual_id("C1", day, start),
        classroom_id="C1",
        date=day,
        start_time=start,
        end_time=end,
    )


class TestMaterialize:
    def test_creates_session_with_defaults(self, db, classroom):
        service = SessionMaterializer(db)

        session = service.materialize(_occurrence())

        assert session.id
        assert not session.id.startswith("virtual-")
        assert session.classroom_id == "C1"
        assert session.date == date(2024, 1, 8)
        assert session.start_time == time(9, 0)
        assert session.end_time == time(10, 0)
        assert session.status == "scheduled"
        assert session.location == settings.default_session_location
        assert session.notes is None

    def test_overrides_are_applied(self, db, classroom):
        service = SessionMaterializer(db)

        session = service.materialize(
            _occurrence(),
            {"status": "cancelled", "location": "online", "notes": "Snow day", "substitute_teacher": "T2"},
        )

        assert session.status == "cancelled"
        assert session.location == "online"
        assert session.notes == "Snow day"
        assert session.substitute_teacher == "T2"

    def test_invalid_override_status_rejected(self):
        with pytest.raises(ValueError):
            MaterializeOverrides(status="postponed")

    def test_materialize_twice_returns_same_row(self, db, classroom):
        service = SessionMaterializer(db)

        first = service.materialize(_occurrence())
        second = service.materialize(_occurrence(), {"notes": "ignored on the second call"})

        assert first.id == second.id
        assert second.notes is None
        assert db.query(ClassroomSession).filter_by(classroom_id="C1").count() == 1

    def test_existing_row_with_seconds_is_reused(self, db, classroom):
        db.add(
            ClassroomSession(
                classroom_id="C1",
                date=date(2024, 1, 8),
                start_time=time(9, 0, 30),
                end_time=time(10, 0),
                status="completed",
            )
        )
        db.flush()

        session = SessionMaterializer(db).materialize(_occurrence())

        assert session.status == "completed"
        assert db.query(ClassroomSession).count() == 1

    def test_lost_race_converges_on_winner(self, db, classroom):
        """The lookup misses, the insert hits the unique index, the winner is re-read."""
        service = SessionMaterializer(db)
        winner = service.materialize(_occurrence())
        real_find = service.session_repository.find_session

        with patch.object(
            service.session_repository,
            "find_session",
            side_effect=[None, real_find("C1", date(2024, 1, 8), "09:00")],
        ):
            result = service.materialize(_occurrence())

        assert result.id == winner.id
        assert db.query(ClassroomSession).count() == 1

    def test_unresolvable_integrity_error_is_persistence_failure(self, db, classroom):
        service = SessionMaterializer(db)
        service.materialize(_occurrence())

        with patch.object(service.session_repository, "find_session", return_value=None):
            with pytest.raises(PersistenceException):
                service.materialize(_occurrence())

    def test_session_usable_after_resolved_race(self, db, classroom):
        service = SessionMaterializer(db)
        service.materialize(_occurrence())
        real_find = service.session_repository.find_session

        with patch.object(
            service.session_repository,
            "find_session",
            side_effect=[None, real_find("C1", date(2024, 1, 8), "09:00")],
        ):
            service.materialize(_occurrence())

        other = service.materialize(_occurrence(day=date(2024, 1, 15)))
        assert other.date == date(2024, 1, 15)

    def test_metrics_recorded(self, db, classroom):
        service = SessionMaterializer(db)
        service.reset_metrics()

        service.materialize(_occurrence())

        metrics = service.get_metrics()
        assert metrics["materialize"]["count"] == 1
        assert metrics["materialize"]["success_rate"] == 1.0


class TestMaterializeById:
    def test_resolves_end_time_from_rule(self, db, classroom, make_rule):
        make_rule(start_time=time(9, 0), end_time=time(10, 30))

        session = SessionMaterializer(db).materialize_by_id("virtual-C1-2024-01-08-09:00")

        assert session.end_time == time(10, 30)
        assert session.date == date(2024, 1, 8)

    def test_non_virtual_id_rejected(self, db):
        with pytest.raises(ValidationException):
            SessionMaterializer(db).materialize_by_id("01HZX7Q7S4VJ1M8K3W2F6T5R9B")

    def test_no_rule_for_occurrence(self, db, classroom, make_rule):
        make_rule()

        with pytest.raises(NotFoundException):
            SessionMaterializer(db).materialize_by_id("virtual-C1-2024-01-09-09:00")

    def test_break_date_is_not_materializable(self, db, classroom, make_rule, make_break):
        make_rule()
        make_break(date(2024, 1, 8), date(2024, 1, 8))

        with pytest.raises(NotFoundException):
            SessionMaterializer(db).materialize_by_id("virtual-C1-2024-01-08-09:00")


class TestBulkMaterialize:
    def test_bulk_is_idempotent(self, db, classroom):
        service = SessionMaterializer(db)
        occurrences = [_occurrence(day=date(2024, 1, d)) for d in (1, 8, 15)]
        service.materialize(occurrences[0], {"notes": "manual"})

        first = service.bulk_materialize(occurrences, {"notes": "frozen"})
        second = service.bulk_materialize(occurrences, {"notes": "frozen"})

        rows = db.query(ClassroomSession).order_by(ClassroomSession.date).all()
        assert first == 3
        assert second == 3
        assert len(rows) == 3
        assert [r.notes for r in rows] == ["manual", "frozen", "frozen"]
        assert all(r.location == settings.default_session_location for r in rows)

    def test_bulk_skips_slot_stored_with_seconds(self, db, classroom):
        db.add(
            ClassroomSession(
                classroom_id="C1", date=date(2024, 1, 8), start_time=time(9, 0, 30), end_time=time(10, 0)
            )
        )
        db.flush()
        occurrences = [_occurrence(day=date(2024, 1, d)) for d in (8, 15)]

        SessionMaterializer(db).bulk_materialize(occurrences)

        rows = db.query(ClassroomSession).order_by(ClassroomSession.date).all()
        assert [(r.date, r.start_time) for r in rows] == [
            (date(2024, 1, 8), time(9, 0, 30)),
            (date(2024, 1, 15), time(9, 0)),
        ]

    def test_bulk_empty(self, db):
        assert SessionMaterializer(db).bulk_materialize([]) == 0
