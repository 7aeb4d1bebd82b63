"""Scheduling constants shared across the classroom scheduler."""

from __future__ import annotations

from datetime import date

# Prefix of every virtual (not yet persisted) session id
VIRTUAL_ID_PREFIX = "virtual-"

# Day numbering follows the calendar UI: Sunday=0 .. Saturday=6
DAYS_OF_WEEK = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DAY_NAME_TO_NUMBER = {name.lower(): index for index, name in enumerate(DAYS_OF_WEEK)}
DAY_NAME_TO_NUMBER.update({name[:3].lower(): index for index, name in enumerate(DAYS_OF_WEEK)})

# Matches no calendar day; unknown day values normalize to this
UNKNOWN_DAY = -1

# Open bounds of a rule's effective window
EFFECTIVE_FROM_MIN = date(1970, 1, 1)
EFFECTIVE_UNTIL_MAX = date(9999, 12, 31)

PHONE_SUFFIX_LENGTH = 4
