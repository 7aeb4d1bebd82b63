"""Domain events written to the outbox."""

from .check_in_events import SelfCheckInRecorded
from .publisher import EventPublisher

__all__ = [
    "EventPublisher",
    "SelfCheckInRecorded",
]
