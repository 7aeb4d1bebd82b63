# backend/classroom_scheduler/services/virtual_sessions.py
"""
Recurrence expansion and virtual session identity.

Everything in this module is pure: rules and breaks are fetched by the
caller, and the same inputs always produce the same occurrences in the same
order (ascending date, then ascending start time). That determinism is what
lets a virtual id computed during one request be materialized in another.

Virtual id format::

    virtual-{classroom_id}-{YYYY-MM-DD}-{HH:MM}

The date and time suffix has a fixed shape, so parsing anchors on it from
the right and classroom ids containing '-' (UUIDs, ULIDs) round-trip.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time, timedelta
import logging
import re
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..core.constants import (
    DAY_NAME_TO_NUMBER,
    EFFECTIVE_FROM_MIN,
    EFFECTIVE_UNTIL_MAX,
    UNKNOWN_DAY,
    VIRTUAL_ID_PREFIX,
)
from ..core.exceptions import ValidationException
from ..schemas.schedule import VirtualOccurrence
from ..utils.time_helpers import TimeLike, normalize_time, sunday_based_weekday, time_to_string

logger = logging.getLogger(__name__)

_VIRTUAL_ID_RE = re.compile(
    rf"^{re.escape(VIRTUAL_ID_PREFIX)}(?P<classroom_id>.+)-"
    r"(?P<date>\d{4}-\d{2}-\d{2})-(?P<start_time>\d{2}:\d{2})$"
)

SessionKey = Tuple[str, date, time]


class RecurrenceRuleLike(Protocol):
    day_of_week: Any
    start_time: Any
    end_time: Any
    effective_from: Optional[date]
    effective_until: Optional[date]


class BreakLike(Protocol):
    start_date: date
    end_date: date


def normalize_day(value: Any) -> int:
    """
    Map a day value to 0 (Sunday) .. 6 (Saturday).

    Accepts ints, numeric strings and weekday names (full or three-letter,
    any case). Anything else maps to UNKNOWN_DAY, which matches no date.
    """
    if isinstance(value, bool):
        return UNKNOWN_DAY
    if isinstance(value, int):
        return value if 0 <= value <= 6 else UNKNOWN_DAY
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.isdigit():
            return normalize_day(int(cleaned))
        return DAY_NAME_TO_NUMBER.get(cleaned.lower(), UNKNOWN_DAY)
    return UNKNOWN_DAY


@dataclass(frozen=True)
class VirtualSessionKey:
    """Coordinates of an occurrence, encodable as a virtual session id."""

    classroom_id: str
    date: date
    start_time: time

    def to_string(self) -> str:
        return f"{VIRTUAL_ID_PREFIX}{self.classroom_id}-{self.date.isoformat()}-{time_to_string(self.start_time)}"

    @classmethod
    def parse(cls, value: str) -> Optional["VirtualSessionKey"]:
        match = _VIRTUAL_ID_RE.match(value or "")
        if not match:
            return None
        try:
            parsed_date = date.fromisoformat(match.group("date"))
            parsed_time = normalize_time(match.group("start_time"))
        except ValueError:
            return None
        return cls(match.group("classroom_id"), parsed_date, parsed_time)

    def as_tuple(self) -> SessionKey:
        return (self.classroom_id, self.date, self.start_time)


def is_encodable_classroom_id(classroom_id: object) -> bool:
    return isinstance(classroom_id, str) and bool(classroom_id) and "\n" not in classroom_id


def virtual_id(classroom_id: str, day: date, start_time: TimeLike) -> str:
    """Deterministic id of the occurrence of ``classroom_id`` on ``day`` at ``start_time``."""
    if not is_encodable_classroom_id(classroom_id):
        raise ValidationException(
            "Classroom id cannot be encoded in a virtual session id",
            code="INVALID_CLASSROOM_ID",
            details={"classroom_id": classroom_id},
        )
    return VirtualSessionKey(classroom_id, day, normalize_time(start_time)).to_string()


def parse_virtual_id(value: str) -> Optional[VirtualSessionKey]:
    """Inverse of virtual_id; None for anything that is not a well-formed virtual id."""
    return VirtualSessionKey.parse(value)


def is_virtual(session_id: str) -> bool:
    return isinstance(session_id, str) and session_id.startswith(VIRTUAL_ID_PREFIX)


def session_key(classroom_id: str, day: date, start_time: TimeLike) -> SessionKey:
    """Composite de-duplication key with the time truncated to minutes."""
    return (str(classroom_id), day, normalize_time(start_time))


def is_date_in_breaks(day: date, breaks: Iterable[BreakLike]) -> bool:
    """True if any break covers ``day`` (inclusive on both ends)."""
    return any(brk.start_date <= day <= brk.end_date for brk in breaks)


def rule_applies_on(rule: RecurrenceRuleLike, day: date) -> bool:
    if getattr(rule, "deleted_at", None) is not None:
        return False
    if normalize_day(rule.day_of_week) != sunday_based_weekday(day):
        return False
    starts = rule.effective_from or EFFECTIVE_FROM_MIN
    ends = rule.effective_until or EFFECTIVE_UNTIL_MAX
    return starts <= day <= ends


def expand(
    classroom_id: str,
    rules: Sequence[RecurrenceRuleLike],
    breaks: Sequence[BreakLike],
    start_date: date,
    end_date: date,
) -> List[VirtualOccurrence]:
    """
    Expand weekly rules into virtual occurrences for ``start_date..end_date``.

    Dates covered by a break produce nothing. Overlapping rules on the same
    day all produce an occurrence. Never raises: a classroom id that cannot
    be encoded in a virtual id expands to nothing.
    """
    occurrences: List[VirtualOccurrence] = []
    if start_date > end_date or not rules:
        return occurrences
    if not is_encodable_classroom_id(classroom_id):
        logger.warning("Cannot expand rules for classroom id %r", classroom_id)
        return occurrences

    current = start_date
    while current <= end_date:
        if not is_date_in_breaks(current, breaks):
            matching = [rule for rule in rules if rule_applies_on(rule, current)]
            matching.sort(key=lambda rule: normalize_time(rule.start_time))
            for rule in matching:
                start = normalize_time(rule.start_time)
                occurrences.append(
                    VirtualOccurrence(
                        id=virtual_id(classroom_id, current, start),
                        classroom_id=classroom_id,
                        date=current,
                        start_time=start,
                        end_time=normalize_time(rule.end_time),
                    )
                )
        current += timedelta(days=1)

    logger.debug(
        "Expanded %d rules into %d occurrences for classroom %s (%s..%s)",
        len(rules),
        len(occurrences),
        classroom_id,
        start_date,
        end_date,
    )
    return occurrences
