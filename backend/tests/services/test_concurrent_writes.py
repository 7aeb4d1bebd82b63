# backend/tests/services/test_concurrent_writes.py
"""
Concurrency tests for materialization and self check-in.

Two workers, each with its own session on a shared file-backed SQLite
database, reach the slot lookup at the same moment.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time
import threading
from typing import Any, Callable

import pytest
from sqlalchemy.orm import Session, sessionmaker

from classroom_scheduler.database import Base, create_db_engine
from classroom_scheduler.models import (
    Attendance,
    Classroom,
    ClassroomSession,
    ClassroomStudent,
    Student,
)
from classroom_scheduler.schemas.check_in import SessionForCheckIn
from classroom_scheduler.schemas.schedule import VirtualOccurrence
from classroom_scheduler.services.self_check_in_service import SelfCheckInService
from classroom_scheduler.services.session_materializer import SessionMaterializer
from classroom_scheduler.services.virtual_sessions import virtual_id

MONDAY = date(2024, 1, 8)
STUDENT_ID = "S-CONCURRENT"


def _meet_first(barrier: threading.Barrier, func: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap ``func`` so its first call waits for the other worker."""
    met = []

    def _wrapper(*args: Any, **kwargs: Any) -> Any:
        if not met:
            met.append(True)
            barrier.wait(timeout=5)
        return func(*args, **kwargs)

    return _wrapper


@pytest.fixture
def session_factory(tmp_path):
    engine = create_db_engine(f"sqlite+pysqlite:///{tmp_path / 'scheduler.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    seed = factory()
    seed.add(Classroom(id="C1", academy_id="A1", name="Beginner Piano"))
    seed.add(Student(user_id=STUDENT_ID, academy_id="A1", name="Mina Park", phone="010-5555-1234", active=True))
    seed.add(ClassroomStudent(classroom_id="C1", student_id=STUDENT_ID, student_record_id="REC-001"))
    seed.commit()
    seed.close()

    yield factory
    engine.dispose()


def _count(factory: sessionmaker, model: Any) -> int:
    session: Session = factory()
    try:
        return session.query(model).count()
    finally:
        session.close()


def test_concurrent_materialize_converges_on_one_row(session_factory) -> None:
    occurrence = VirtualOccurrence(
        id=virtual_id("C1", MONDAY, "09:00"),
        classroom_id="C1",
        date=MONDAY,
        start_time="09:00",
        end_time="10:00",
    )
    barrier = threading.Barrier(2)

    def _worker(_: int) -> str:
        session = session_factory()
        try:
            service = SessionMaterializer(session)
            repo = service.session_repository
            repo.find_session = _meet_first(barrier, repo.find_session)
            return service.materialize(occurrence).id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as executor:
        ids = list(executor.map(_worker, range(2)))

    assert ids[0] == ids[1]
    assert _count(session_factory, ClassroomSession) == 1


def test_concurrent_check_in_records_one_attendance(session_factory) -> None:
    slot = SessionForCheckIn(
        id=virtual_id("C1", MONDAY, "09:00"),
        classroom_id="C1",
        classroom_name="Beginner Piano",
        date=MONDAY,
        start_time=time(9, 0),
        end_time=time(10, 0),
        is_virtual=True,
    )
    barrier = threading.Barrier(2)

    def _worker(_: int):
        session = session_factory()
        try:
            service = SelfCheckInService(session)
            repo = service.attendance_repository
            repo.find_attendance = _meet_first(barrier, repo.find_attendance)
            [result] = service.check_in(STUDENT_ID, "Mina Park", [slot], now=datetime(2024, 1, 8, 8, 55))
            return result
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=2) as executor:
        results = list(executor.map(_worker, range(2)))

    assert all(result.error is None for result in results)
    assert results[0].session_id == results[1].session_id
    assert sorted(result.already_checked_in for result in results) == [False, True]
    assert _count(session_factory, ClassroomSession) == 1
    assert _count(session_factory, Attendance) == 1
