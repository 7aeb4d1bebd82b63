# backend/classroom_scheduler/services/schedule_update_service.py
"""
Schedule Update Service for the classroom scheduler

Applies a day/time edit to a recurrence rule through one of three
strategies. Every strategy ends with the same cutover: the old rule's
window is closed the day before the cutover date and a new open-ended rule
starts on it.

- future_only: cutover today
- from_date: cutover on a caller-supplied date
- materialize_existing: first freeze the old cadence into stored sessions
  for the next ``settings.freeze_horizon_months`` months, then cut over today

The freeze and the cutover commit separately. A failure in the cutover
leaves the frozen rows in place; retrying is safe because the freeze skips
slots that already have a row.
"""

from datetime import date, timedelta
import logging
from typing import Any, Mapping, Optional, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import UNKNOWN_DAY
from ..core.exceptions import InvalidDayException, ScheduleNotFoundException, ValidationException
from ..models.classroom_schedule import ClassroomSchedule
from ..repositories.classroom_schedule_repository import ClassroomScheduleRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.schedule_break_repository import ScheduleBreakRepository
from ..schemas.schedule import (
    MaterializeOverrides,
    ScheduleRuleEdit,
    ScheduleRuleResponse,
    ScheduleUpdateOptions,
    ScheduleUpdateResult,
    UpdateStrategy,
)
from ..utils.time_helpers import add_months, normalize_time
from .base import BaseService
from .session_materializer import SessionMaterializer
from .virtual_sessions import RecurrenceRuleLike, expand, normalize_day

logger = logging.getLogger(__name__)

EditInput = Union[ScheduleRuleEdit, Mapping[str, Any]]
OptionsInput = Union[ScheduleUpdateOptions, Mapping[str, Any]]


def _coerce_edit(new_values: EditInput) -> ScheduleRuleEdit:
    if isinstance(new_values, ScheduleRuleEdit):
        return new_values
    try:
        return ScheduleRuleEdit.model_validate(dict(new_values))
    except ValueError as exc:
        raise ValidationException(
            f"Invalid schedule values: {exc}",
            code="INVALID_SCHEDULE_VALUES",
        ) from exc


def _coerce_options(options: OptionsInput) -> ScheduleUpdateOptions:
    if isinstance(options, ScheduleUpdateOptions):
        return options
    try:
        return ScheduleUpdateOptions.model_validate(dict(options))
    except ValueError as exc:
        raise ValidationException(
            f"Invalid schedule update options: {exc}",
            code="INVALID_UPDATE_OPTIONS",
        ) from exc


def requires_update_modal(old_rule: RecurrenceRuleLike, new_values: EditInput) -> bool:
    """
    Whether an edit touches day or time and therefore needs a strategy choice.

    Fields absent from ``new_values`` count as unchanged.
    """
    edit = _coerce_edit(new_values)
    if edit.start_time is not None and edit.start_time != normalize_time(old_rule.start_time):
        return True
    if edit.end_time is not None and edit.end_time != normalize_time(old_rule.end_time):
        return True
    if edit.day_of_week is not None and normalize_day(edit.day_of_week) != normalize_day(
        old_rule.day_of_week
    ):
        return True
    return False


class ScheduleUpdateService(BaseService):
    """Cutover of recurrence rules without rewriting history."""

    def __init__(
        self,
        db: Session,
        schedule_repository: Optional[ClassroomScheduleRepository] = None,
        break_repository: Optional[ScheduleBreakRepository] = None,
        materializer: Optional[SessionMaterializer] = None,
    ):
        super().__init__(db)
        self.schedule_repository = (
            schedule_repository or RepositoryFactory.create_classroom_schedule_repository(db)
        )
        self.break_repository = (
            break_repository or RepositoryFactory.create_schedule_break_repository(db)
        )
        self.materializer = materializer or SessionMaterializer(db)

    requires_update_modal = staticmethod(requires_update_modal)

    @BaseService.measure_operation("apply_schedule_change")
    def apply_schedule_change(
        self,
        schedule_id: str,
        new_values: EditInput,
        options: OptionsInput,
        *,
        today: Optional[date] = None,
    ) -> ScheduleUpdateResult:
        """
        Apply a day/time edit to a recurrence rule.

        Args:
            schedule_id: The rule being edited
            new_values: New day/start/end; omitted fields keep the old value
            options: Strategy and, for from_date, the cutover date
            today: Override of the current date

        Returns:
            ScheduleUpdateResult describing the closed and the new rule

        Raises:
            ValidationException: Missing effective_date or an unknown day
            ScheduleNotFoundException: If the rule does not exist
            PersistenceException: If a write fails
        """
        edit = _coerce_edit(new_values)
        opts = _coerce_options(options)
        current_day = today or date.today()

        if opts.update_strategy == UpdateStrategy.FROM_DATE and opts.effective_date is None:
            raise ValidationException(
                "effective_date is required for the from_date strategy",
                code="EFFECTIVE_DATE_REQUIRED",
            )
        if edit.day_of_week is not None and normalize_day(edit.day_of_week) == UNKNOWN_DAY:
            raise InvalidDayException(edit.day_of_week)

        rule = self.schedule_repository.get_by_id(schedule_id)
        if rule is None or rule.deleted_at is not None:
            raise ScheduleNotFoundException(schedule_id)

        self.log_operation(
            "apply_schedule_change",
            schedule_id=schedule_id,
            strategy=opts.update_strategy.value,
        )

        if opts.update_strategy == UpdateStrategy.FUTURE_ONLY:
            return self._cutover(rule, edit, current_day, opts.update_strategy)

        if opts.update_strategy == UpdateStrategy.FROM_DATE:
            return self._cutover(rule, edit, opts.effective_date, opts.update_strategy)

        frozen = self.freeze_upcoming_sessions(rule, current_day)
        return self._cutover(rule, edit, current_day, opts.update_strategy, materialized_count=frozen)

    def freeze_upcoming_sessions(self, rule: ClassroomSchedule, start_date: date) -> int:
        """
        Store every occurrence of ``rule`` from ``start_date`` to the freeze horizon.

        Returns the number of occurrences submitted; slots that already have a
        row are left untouched.
        """
        horizon = add_months(start_date, settings.freeze_horizon_months)
        breaks = self.break_repository.get_breaks(rule.classroom_id)
        occurrences = expand(rule.classroom_id, [rule], breaks, start_date, horizon)
        self.logger.info(
            "Freezing %d occurrences of schedule %s through %s",
            len(occurrences),
            rule.id,
            horizon,
        )
        return self.materializer.bulk_materialize(
            occurrences, MaterializeOverrides(notes=settings.freeze_note)
        )

    def _cutover(
        self,
        rule: ClassroomSchedule,
        edit: ScheduleRuleEdit,
        cutover: date,
        strategy: UpdateStrategy,
        materialized_count: int = 0,
    ) -> ScheduleUpdateResult:
        close_at = cutover - timedelta(days=1)
        # Closing never widens a window that already ends earlier
        if rule.effective_until is not None and rule.effective_until < close_at:
            close_at = rule.effective_until
        if rule.effective_from is not None and close_at < rule.effective_from:
            self.logger.warning(
                "Cutover %s precedes schedule %s start %s; old rule produces no dates",
                cutover,
                rule.id,
                rule.effective_from,
            )

        with self.transaction():
            self.schedule_repository.close_rule(rule.id, close_at)
            new_rule = self.schedule_repository.create_rule(
                classroom_id=rule.classroom_id,
                day_of_week=edit.day_of_week if edit.day_of_week is not None else rule.day_of_week,
                start_time=edit.start_time if edit.start_time is not None else rule.start_time,
                end_time=edit.end_time if edit.end_time is not None else rule.end_time,
                effective_from=cutover,
                effective_until=None,
            )

        self.logger.info(
            "Schedule %s cut over to %s on %s (%s)",
            rule.id,
            new_rule.id,
            cutover,
            strategy.value,
        )
        return ScheduleUpdateResult(
            success=True,
            strategy=strategy,
            closed_schedule_id=rule.id,
            new_schedule=ScheduleRuleResponse.model_validate(new_rule),
            materialized_count=materialized_count,
        )
