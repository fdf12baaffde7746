"""AnalyticsEvent model."""

import uuid

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.sql import func

from database import Base


class AnalyticsEvent(Base):
    """Fire-and-forget product analytics event."""

    __tablename__ = "analytics_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=True, index=True)
    event_type = Column(String, nullable=False, index=True)
    event_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
