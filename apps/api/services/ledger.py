"""Coin ledger store: account balances and the append-only transaction log."""

from __future__ import annotations

from enum import Enum
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.coin_transaction import CoinTransaction
from models.user import User
from services.exceptions import AccountNotFound, StorageError

logger = logging.getLogger(__name__)


class TransactionType(str, Enum):
    EARNED = "earned"
    SPENT = "spent"
    SUBSCRIPTION = "subscription"
    BONUS = "bonus"


async def get_balance(db: AsyncSession, user_id: str) -> int:
    """Read the account's balance. The balance column is the source of truth."""
    try:
        result = await db.execute(select(User.coin_balance).where(User.id == user_id))
        balance = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Balance read failed for user %s", user_id)
        raise StorageError(detail=str(exc)) from exc
    if balance is None:
        raise AccountNotFound(detail=f"user {user_id} has no account")
    return int(balance)


async def account_exists(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def append_transaction(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    transaction_type: str,
    description: str,
    related_entity_id: Optional[str] = None,
    balance_after: Optional[int] = None,
) -> CoinTransaction:
    """Add an immutable record to the caller's unit of work."""
    entry = CoinTransaction(
        user_id=user_id,
        amount=int(amount),
        transaction_type=str(transaction_type),
        description=description,
        related_entity_id=related_entity_id,
        balance_after=balance_after,
    )
    db.add(entry)
    await db.flush()
    return entry


async def list_transactions(db: AsyncSession, user_id: str, limit: int = 50) -> List[CoinTransaction]:
    result = await db.execute(
        select(CoinTransaction)
        .where(CoinTransaction.user_id == user_id)
        .order_by(CoinTransaction.id.desc())
        .limit(max(int(limit), 1))
    )
    return list(result.scalars().all())


async def ledger_total(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(CoinTransaction.amount), 0)).where(CoinTransaction.user_id == user_id)
    )
    return int(result.scalar() or 0)


async def reconcile(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    """Compare the stored balance with the sum of the audit log."""
    balance = await get_balance(db, user_id)
    total = await ledger_total(db, user_id)
    if balance != total:
        logger.warning("Ledger drift for user %s: balance=%s ledger_total=%s", user_id, balance, total)
    return {
        "balance": balance,
        "ledger_total": total,
        "consistent": balance == total,
    }


def serialize_transaction(entry: CoinTransaction) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "amount": entry.amount,
        "transaction_type": entry.transaction_type,
        "description": entry.description,
        "related_entity_id": entry.related_entity_id,
        "balance_after": entry.balance_after,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
