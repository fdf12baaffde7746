"""Coin charge/grant engine.

Every balance mutation goes through ``apply_coin_delta``: a conditional
``UPDATE`` on the account row followed by the audit record insert, both in
the caller's database transaction. The conditional update takes the row
write lock, so concurrent charges on one account serialize and can never
overdraw it, while different accounts proceed independently.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.coin_transaction import CoinTransaction
from models.user import User
from services.exceptions import (
    AccountNotFound,
    AuthenticationError,
    CoinServiceError,
    InsufficientCoins,
    InvalidAmount,
    InvalidTransactionType,
    StorageError,
)
from services.ledger import TransactionType, account_exists, append_transaction, get_balance

logger = logging.getLogger(__name__)


class CoinResult(BaseModel):
    """Outcome of a charge or grant. Business failures are reported, not raised."""

    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    balance_after: Optional[int] = None
    transaction_id: Optional[int] = None

    @classmethod
    def failure(cls, exc: CoinServiceError, balance: Optional[int] = None) -> "CoinResult":
        return cls(success=False, error=exc.message, error_code=exc.error_code, balance_after=balance)


def _validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount("Amount must be a positive integer", detail=f"amount={amount!r}")
    return amount


def _validate_type(transaction_type) -> str:
    try:
        return TransactionType(str(transaction_type)).value
    except ValueError as exc:
        raise InvalidTransactionType(detail=f"transaction_type={transaction_type!r}") from exc


async def apply_coin_delta(
    db: AsyncSession,
    *,
    user_id: str,
    delta: int,
    transaction_type: str,
    description: str,
    related_entity_id: Optional[str] = None,
) -> CoinTransaction:
    """Mutate the balance by ``delta`` and append its audit record.

    Flushes but does not commit; the caller owns the transaction. Raises
    AccountNotFound or InsufficientCoins without mutating anything.
    """
    stmt = update(User).where(User.id == user_id)
    if delta < 0:
        stmt = stmt.where(User.coin_balance >= -delta)
    stmt = stmt.values(coin_balance=User.coin_balance + delta).execution_options(synchronize_session=False)

    result = await db.execute(stmt)
    if result.rowcount == 0:
        if not await account_exists(db, user_id):
            raise AccountNotFound(detail=f"user {user_id} has no account")
        balance = await get_balance(db, user_id)
        raise InsufficientCoins(balance=balance, required=-delta)

    balance_after = await get_balance(db, user_id)
    return await append_transaction(
        db,
        user_id=user_id,
        amount=delta,
        transaction_type=transaction_type,
        description=description,
        related_entity_id=related_entity_id,
        balance_after=balance_after,
    )


async def _commit_delta(
    db: AsyncSession,
    *,
    user_id: str,
    delta: int,
    transaction_type: str,
    description: str,
    related_entity_id: Optional[str],
) -> CoinResult:
    try:
        entry = await apply_coin_delta(
            db,
            user_id=user_id,
            delta=delta,
            transaction_type=transaction_type,
            description=description,
            related_entity_id=related_entity_id,
        )
        await db.commit()
    except InsufficientCoins as exc:
        await db.rollback()
        logger.info("Insufficient coins for user %s: %s", user_id, exc.detail)
        return CoinResult.failure(exc, balance=exc.balance)
    except AccountNotFound:
        await db.rollback()
        return CoinResult.failure(AuthenticationError())
    except StorageError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Coin ledger write failed for user %s (delta=%s)", user_id, delta)
        raise StorageError(detail=str(exc)) from exc

    return CoinResult(success=True, balance_after=entry.balance_after, transaction_id=entry.id)


async def charge_coins(
    db: AsyncSession,
    user_id: str,
    amount: int,
    transaction_type: str = TransactionType.SPENT.value,
    description: str = "Coin spend",
    related_entity_id: Optional[str] = None,
) -> CoinResult:
    """Debit ``amount`` coins, failing with INSUFFICIENT_COINS when the balance is short."""
    try:
        debit = _validate_amount(amount)
        tx_type = _validate_type(transaction_type)
    except CoinServiceError as exc:
        return CoinResult.failure(exc)
    if not user_id:
        return CoinResult.failure(AuthenticationError())

    result = await _commit_delta(
        db,
        user_id=user_id,
        delta=-debit,
        transaction_type=tx_type,
        description=description,
        related_entity_id=related_entity_id,
    )
    if result.success:
        logger.info("Charged %s coins from user %s (%s)", debit, user_id, description)
    return result


async def grant_coins(
    db: AsyncSession,
    user_id: str,
    amount: int,
    transaction_type: str = TransactionType.EARNED.value,
    description: str = "Coin grant",
    related_entity_id: Optional[str] = None,
) -> CoinResult:
    """Credit ``amount`` coins unconditionally."""
    try:
        credit = _validate_amount(amount)
        tx_type = _validate_type(transaction_type)
    except CoinServiceError as exc:
        return CoinResult.failure(exc)
    if not user_id:
        return CoinResult.failure(AuthenticationError())

    result = await _commit_delta(
        db,
        user_id=user_id,
        delta=credit,
        transaction_type=tx_type,
        description=description,
        related_entity_id=related_entity_id,
    )
    if result.success:
        logger.info("Granted %s coins to user %s (%s)", credit, user_id, description)
    return result


async def refund_coins(
    db: AsyncSession,
    user_id: str,
    amount: int,
    description: str,
    related_entity_id: Optional[str] = None,
) -> CoinResult:
    """Compensate a committed charge whose downstream operation failed."""
    return await grant_coins(
        db,
        user_id,
        amount,
        transaction_type=TransactionType.EARNED.value,
        description=f"Refund: {description}",
        related_entity_id=related_entity_id,
    )
