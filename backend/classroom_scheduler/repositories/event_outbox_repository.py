# backend/classroom_scheduler/repositories/event_outbox_repository.py
from sqlalchemy.orm import Session

from ..models.event_outbox import EventOutbox
from .base_repository import BaseRepository


class EventOutboxRepository(BaseRepository[EventOutbox]):
    def __init__(self, db: Session):
        super().__init__(db, EventOutbox)

    def enqueue(self, event_type: str, payload: str) -> EventOutbox:
        return self.create(event_type=event_type, payload=payload)
