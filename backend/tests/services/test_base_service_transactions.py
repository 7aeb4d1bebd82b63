# backend/tests/services/test_base_service_transactions.py
"""Tests for BaseService transaction handling and operation metrics."""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from classroom_scheduler.core.exceptions import PersistenceException, ValidationException
from classroom_scheduler.services.base import BaseService


class _SampleService(BaseService):
    @BaseService.measure_operation("sample")
    def sample(self, fail: bool = False) -> str:
        if fail:
            raise ValidationException("nope")
        return "ok"


class TestTransaction:
    def test_commit_on_success(self):
        db = Mock(spec=Session)
        service = _SampleService(db)

        with service.transaction():
            pass

        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_sqlalchemy_error_becomes_persistence_exception(self):
        db = Mock(spec=Session)
        service = _SampleService(db)

        with pytest.raises(PersistenceException):
            with service.transaction():
                raise OperationalError("UPDATE", {}, Exception("disk I/O error"))

        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_domain_errors_propagate_unchanged(self):
        db = Mock(spec=Session)
        service = _SampleService(db)

        with pytest.raises(ValidationException):
            with service.transaction():
                raise ValidationException("bad input")

        db.rollback.assert_called_once()


class TestMetrics:
    def test_success_and_failure_counted(self):
        service = _SampleService(Mock(spec=Session))
        service.reset_metrics()

        service.sample()
        with pytest.raises(ValidationException):
            service.sample(fail=True)

        metrics = service.get_metrics()["sample"]
        assert metrics["count"] == 2
        assert metrics["failure_count"] == 1
        assert metrics["success_rate"] == 0.5
