# backend/classroom_scheduler/schemas/schedule.py
"""
Schedule schemas for the classroom scheduler.

VirtualOccurrence is the computed, never-stored view of one recurrence rule
on one date. The remaining models describe a recurrence-rule edit and its
outcome.
"""

import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BeforeValidator, ConfigDict, Field, field_validator

from ..utils.time_helpers import normalize_time
from ._strict_base import StrictModel, StrictRequestModel

# Type aliases for clarity
DateType = datetime.date
TimeType = datetime.time
DayValue = Union[int, str]


def _coerce_time(value: object) -> object:
    if isinstance(value, (str, datetime.time)):
        return normalize_time(value)
    return value


# Minute-precision wall-clock time; "HH:MM" and "HH:MM:SS" strings are accepted
MinuteTime = Annotated[TimeType, BeforeValidator(_coerce_time)]


class VirtualOccurrence(StrictModel):
    """An occurrence expanded from a recurrence rule that has no stored row yet."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    classroom_id: str
    date: DateType
    start_time: MinuteTime
    end_time: MinuteTime
    status: Literal["scheduled"] = "scheduled"
    is_virtual: Literal[True] = True
    location: Optional[str] = None
    notes: Optional[str] = None
    substitute_teacher: Optional[str] = None


class ScheduleRule(StrictModel):
    """
    Detached recurrence rule.

    Accepts ``day_of_week`` as 0-6 (Sunday=0) or a weekday name; the expander
    normalizes both.
    """

    id: Optional[str] = None
    classroom_id: str
    day_of_week: DayValue
    start_time: MinuteTime
    end_time: MinuteTime
    effective_from: Optional[DateType] = None
    effective_until: Optional[DateType] = None
    deleted_at: Optional[datetime.datetime] = None


class ScheduleBreakWindow(StrictModel):
    """Detached break interval (inclusive on both ends)."""

    classroom_id: Optional[str] = None
    start_date: DateType
    end_date: DateType
    reason: Optional[str] = None

    @field_validator("end_date")
    @classmethod
    def validate_range(cls, v: DateType, info: object) -> DateType:
        data = getattr(info, "data", None)
        if isinstance(data, dict) and data.get("start_date") and v < data["start_date"]:
            raise ValueError("Break end_date must not be before start_date")
        return v


class SessionStatusValue(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MaterializeOverrides(StrictRequestModel):
    """Values applied when a virtual occurrence is first persisted."""

    status: Optional[SessionStatusValue] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    substitute_teacher: Optional[str] = None


class UpdateStrategy(str, Enum):
    FUTURE_ONLY = "future_only"
    FROM_DATE = "from_date"
    MATERIALIZE_EXISTING = "materialize_existing"


class ScheduleRuleEdit(StrictRequestModel):
    """New day/time values for a recurrence rule; omitted fields keep the old value."""

    day_of_week: Optional[DayValue] = None
    start_time: Optional[MinuteTime] = None
    end_time: Optional[MinuteTime] = None


class ScheduleUpdateOptions(StrictRequestModel):
    update_strategy: UpdateStrategy
    effective_date: Optional[DateType] = Field(
        default=None,
        description="Cutover date, required for the from_date strategy",
    )


class ScheduleRuleResponse(StrictModel):
    model_config = ConfigDict(extra="ignore", from_attributes=True)

    id: str
    classroom_id: str
    day_of_week: int
    start_time: TimeType
    end_time: TimeType
    effective_from: Optional[DateType] = None
    effective_until: Optional[DateType] = None


class ScheduleUpdateResult(StrictModel):
    success: bool = True
    strategy: UpdateStrategy
    closed_schedule_id: str
    new_schedule: ScheduleRuleResponse
    materialized_count: int = 0
