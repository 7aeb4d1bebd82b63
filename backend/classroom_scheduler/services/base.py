# backend/classroom_scheduler/services/base.py
"""
Shared service plumbing for the scheduler.

Services own the unit of work: repositories flush, services commit through
``transaction()``. Database failures surface as PersistenceException so API
layers can answer 503 without knowing about SQLAlchemy.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import PersistenceException

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


def _empty_metric() -> Dict[str, Any]:
    return {
        "count": 0,
        "total_time": 0.0,
        "failure_count": 0,
        "min_time": float("inf"),
        "max_time": 0.0,
    }


class BaseService:
    """Base class for scheduler services (materializer, aggregator, updates, check-in)."""

    # service class name -> operation -> counters
    _class_metrics: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any error.

        SQLAlchemy errors are re-raised as PersistenceException; domain
        exceptions propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.logger.error(f"Scheduler transaction failed: {str(e)}")
            self.db.rollback()
            raise PersistenceException(f"Database operation failed: {str(e)}")
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Record timing and outcome of a service call under ``operation_name``."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.time()
                succeeded = False
                try:
                    result = func(self, *args, **kwargs)
                    succeeded = True
                    return result
                finally:
                    elapsed = time.time() - started
                    self._record_metric(operation_name, elapsed, succeeded)
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(f"Slow scheduler operation: {operation_name} took {elapsed:.2f}s")

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        per_class = BaseService._class_metrics.setdefault(self.__class__.__name__, {})
        data = per_class.setdefault(operation, _empty_metric())
        data["count"] += 1
        data["total_time"] += elapsed
        data["min_time"] = min(data["min_time"], elapsed)
        data["max_time"] = max(data["max_time"], elapsed)
        if not success:
            data["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """
        Summarize measured operations for this service class.

        Returns:
            Mapping of operation name to count, avg/min/max time,
            success_rate and failure_count
        """
        summary: Dict[str, Any] = {}
        for operation, data in BaseService._class_metrics.get(self.__class__.__name__, {}).items():
            count = data["count"]
            if not count:
                continue
            summary[operation] = {
                "count": count,
                "avg_time": data["total_time"] / count,
                "min_time": data["min_time"],
                "max_time": data["max_time"],
                "success_rate": (count - data["failure_count"]) / count,
                "failure_count": data["failure_count"],
            }
        return summary

    def reset_metrics(self) -> None:
        BaseService._class_metrics.pop(self.__class__.__name__, None)
