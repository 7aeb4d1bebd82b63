"""Event publisher - writes domain events to the outbox table."""
from datetime import date, datetime
import json
import logging
from typing import Any, Dict, Protocol

from ..repositories.event_outbox_repository import EventOutboxRepository

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


class EventPublisher:
    """Publishes domain events to the outbox for delivery by another process."""

    def __init__(self, outbox_repository: EventOutboxRepository):
        self.outbox_repo = outbox_repository

    def publish(self, event: Event) -> None:
        """
        Queue an event in the outbox.

        Does not commit; the caller's transaction decides whether the event
        is kept.
        """
        event_type = type(event).__name__
        payload = event.to_dict()

        # Convert date/datetime objects to ISO strings for JSON serialization
        for key, value in payload.items():
            if isinstance(value, (datetime, date)):
                payload[key] = value.isoformat()

        self.outbox_repo.enqueue(event_type=f"event:{event_type}", payload=json.dumps(payload))
        logger.debug("Queued %s event", event_type)
