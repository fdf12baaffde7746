"""Subscription state helpers."""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user import User
from services.exceptions import AccountNotFound, StorageError
from services.tiers import SubscriptionTier

logger = logging.getLogger(__name__)


def add_one_month(value: datetime) -> datetime:
    """Same day next month, clamped to the last day of a shorter month."""
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def set_subscription(
    db: AsyncSession,
    user_id: str,
    *,
    tier: str,
    payment_id: Optional[str],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Start a one-month subscription period. Flushes; the caller commits.

    Only subscription columns are written here, never coin_balance.
    """
    start = now or datetime.now(timezone.utc)
    end = add_one_month(start)
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            subscription_tier=tier,
            subscription_start_date=start,
            subscription_end_date=end,
            payment_subscription_id=payment_id,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AccountNotFound(detail=f"user {user_id} has no account")
    return {"tier": tier, "start_date": start, "end_date": end}


async def get_subscription_status(
    db: AsyncSession,
    user_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    current = now or datetime.now(timezone.utc)
    try:
        result = await db.execute(
            select(
                User.subscription_tier,
                User.subscription_start_date,
                User.subscription_end_date,
            ).where(User.id == user_id)
        )
        row = result.one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Subscription read failed for user %s", user_id)
        raise StorageError(detail=str(exc)) from exc

    if row is None:
        raise AccountNotFound(detail=f"user {user_id} has no account")

    tier, start_date, end_date = row
    end_date = _as_utc(end_date)
    active = tier != SubscriptionTier.FREE.value and end_date is not None and end_date > current
    return {
        "active": active,
        "tier": tier if active else SubscriptionTier.FREE.value,
        "start_date": _as_utc(start_date).isoformat() if start_date else None,
        "end_date": end_date.isoformat() if end_date else None,
    }


async def cancel_subscription(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    """Drop back to the free tier. Coins already granted stay on the account."""
    try:
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(subscription_tier=SubscriptionTier.FREE.value, payment_subscription_id=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            raise AccountNotFound(detail=f"user {user_id} has no account")
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Subscription cancel failed for user %s", user_id)
        raise StorageError(detail=str(exc)) from exc

    logger.info("Cancelled subscription for user %s", user_id)
    return {"tier": SubscriptionTier.FREE.value, "cancelled": True}
