"""Best-effort analytics event sink."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.analytics_event import AnalyticsEvent

logger = logging.getLogger(__name__)


async def record_event(
    db: AsyncSession,
    user_id: Optional[str],
    event_type: str,
    event_data: Optional[Dict[str, Any]] = None,
) -> bool:
    """Persist an analytics event. Failures are logged and reported, never raised.

    Call only after the caller's financial writes are committed: this commits
    and, on failure, rolls back the session.
    """
    try:
        db.add(AnalyticsEvent(user_id=user_id, event_type=event_type, event_data=event_data or {}))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning("Analytics event %s for user %s dropped: %s", event_type, user_id, exc)
        return False
    return True
