# backend/classroom_scheduler/schemas/check_in.py
"""Self check-in kiosk schemas."""

import datetime
from typing import Literal, Optional

from pydantic import Field

from ._strict_base import StrictModel

DateType = datetime.date
TimeType = datetime.time

# Fresh check-ins are present or late; a repeat reports whatever was stored
CheckInStatus = Literal["present", "late", "absent", "excused"]


class MatchedStudent(StrictModel):
    id: str
    name: str
    phone: str


class SessionForCheckIn(StrictModel):
    """One of today's sessions for a student, persisted or virtual."""

    id: str
    classroom_id: str
    classroom_name: str = "Unknown"
    date: DateType
    start_time: TimeType
    end_time: TimeType
    is_virtual: bool = False


class CheckInResult(StrictModel):
    session_id: str
    classroom_name: str
    status: CheckInStatus
    already_checked_in: bool = False
    error: Optional[str] = Field(default=None, description="Set when this session failed")

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.already_checked_in
