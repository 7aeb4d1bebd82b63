# backend/tests/conftest.py
"""
Shared fixtures for the classroom scheduler tests.

Every test runs on one in-memory SQLite database inside an outer transaction
that is rolled back afterwards. The session joins that transaction through a
SAVEPOINT, so service code can commit and roll back freely.
"""

from datetime import date, time
import os
from typing import Callable, Optional

os.environ.setdefault("IS_TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from classroom_scheduler.core.ulid_helper import generate_ulid
from classroom_scheduler.database import Base, create_db_engine

# Import models so Base.metadata is populated for create_all.
import classroom_scheduler.models  # noqa: F401
from classroom_scheduler.models import (
    Classroom,
    ClassroomSchedule,
    ClassroomStudent,
    ScheduleBreak,
    Student,
)


@pytest.fixture(scope="session")
def _test_engine():
    engine = create_db_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(_test_engine) -> Session:
    """
    Provide a transactional session bound to the shared in-memory engine.
    """
    connection = _test_engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def academy_id() -> str:
    return generate_ulid()


@pytest.fixture
def classroom(db: Session, academy_id: str) -> Classroom:
    room = Classroom(id="C1", academy_id=academy_id, name="Beginner Piano")
    db.add(room)
    db.flush()
    return room


@pytest.fixture
def make_rule(db: Session) -> Callable[..., ClassroomSchedule]:
    def _make_rule(
        classroom_id: str = "C1",
        day_of_week: int = 1,
        start_time: time = time(9, 0),
        end_time: time = time(10, 0),
        effective_from: Optional[date] = date(2024, 1, 1),
        effective_until: Optional[date] = None,
    ) -> ClassroomSchedule:
        rule = ClassroomSchedule(
            classroom_id=classroom_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            effective_from=effective_from,
            effective_until=effective_until,
        )
        db.add(rule)
        db.flush()
        return rule

    return _make_rule


@pytest.fixture
def make_break(db: Session) -> Callable[..., ScheduleBreak]:
    def _make_break(
        start_date: date,
        end_date: date,
        classroom_id: str = "C1",
        reason: Optional[str] = None,
    ) -> ScheduleBreak:
        brk = ScheduleBreak(
            classroom_id=classroom_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
        )
        db.add(brk)
        db.flush()
        return brk

    return _make_break


@pytest.fixture
def enrolled_student(db: Session, classroom: Classroom, academy_id: str) -> Student:
    student = Student(
        user_id=generate_ulid(),
        academy_id=academy_id,
        name="Mina Park",
        phone="010-5555-1234",
        active=True,
    )
    db.add(student)
    db.add(
        ClassroomStudent(
            classroom_id=classroom.id,
            student_id=student.user_id,
            student_record_id="REC-001",
        )
    )
    db.flush()
    return student
