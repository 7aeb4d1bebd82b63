# backend/classroom_scheduler/models/event_outbox.py
"""Outbox rows written by the event publisher and drained by notification workers."""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base


class EventOutbox(Base):
    __tablename__ = "event_outbox"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    event_type = Column(String(100), nullable=False, index=True)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<EventOutbox {self.event_type} {self.id}>"
