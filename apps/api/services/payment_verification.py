"""Payment callback verification and settlement.

A verified callback moves the account to the paid tier and grants the tier's
coins. The processed-payment row, the subscription update and the grant commit
as one database transaction; the unique ``payment_id`` makes a replayed
callback fail instead of granting twice.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.payment_order import PaymentOrder
from models.processed_payment import ProcessedPayment
from models.user import User
from services.analytics import record_event
from services.coins import apply_coin_delta
from services.exceptions import (
    AccountNotFound,
    AlreadyProcessed,
    AuthenticationError,
    CoinServiceError,
    InvalidSignature,
    OrderMismatch,
    StorageError,
)
from services.ledger import TransactionType
from services.subscriptions import set_subscription
from services.tiers import TierPlan, resolve_tier

logger = logging.getLogger(__name__)


class VerificationResult(BaseModel):
    success: bool
    message: Optional[str] = None
    coins: Optional[int] = None
    subscription: Optional[str] = None
    coins_granted: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    status_code: int = 200

    @classmethod
    def failure(cls, exc: CoinServiceError) -> "VerificationResult":
        return cls(success=False, error=exc.message, error_code=exc.error_code, status_code=exc.status_code)


def compute_payment_signature(secret: str, order_id: str, payment_id: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    if not secret or not signature:
        return False
    expected = compute_payment_signature(secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), str(signature).strip().encode("utf-8"))


async def _check_order(db: AsyncSession, order_id: str, user_id: str, plan: TierPlan) -> Optional[PaymentOrder]:
    """Validate the locally stored order, if the order was created through us."""
    result = await db.execute(select(PaymentOrder).where(PaymentOrder.order_id == order_id))
    order = result.scalar_one_or_none()
    if order is None:
        return None
    if order.user_id != user_id:
        raise OrderMismatch(detail=f"order {order_id} belongs to another user")
    if int(order.amount) != int(plan.price_minor_units):
        raise OrderMismatch(
            detail=f"order {order_id} amount {order.amount} != {plan.tier.value} price {plan.price_minor_units}"
        )
    return order


async def _settle(
    db: AsyncSession,
    *,
    user_id: str,
    order_id: str,
    payment_id: str,
    plan: TierPlan,
    now: Optional[datetime],
) -> None:
    exists = await db.execute(select(User.id).where(User.id == user_id))
    if exists.scalar_one_or_none() is None:
        raise AuthenticationError(detail=f"user {user_id} has no account")

    order = await _check_order(db, order_id, user_id, plan)

    db.add(
        ProcessedPayment(
            payment_id=payment_id,
            order_id=order_id,
            user_id=user_id,
            tier=plan.tier.value,
            coins_granted=plan.monthly_coins,
        )
    )
    try:
        await db.flush()
    except IntegrityError as exc:
        raise AlreadyProcessed(detail=f"payment {payment_id} already settled") from exc

    await set_subscription(db, user_id, tier=plan.tier.value, payment_id=payment_id, now=now)
    await apply_coin_delta(
        db,
        user_id=user_id,
        delta=plan.monthly_coins,
        transaction_type=TransactionType.SUBSCRIPTION.value,
        description=f"{plan.name} subscription purchase",
        related_entity_id=payment_id,
    )
    if order is not None:
        order.status = "paid"
    await db.commit()


async def verify_payment(
    db: AsyncSession,
    *,
    secret: str,
    order_id: str,
    payment_id: str,
    signature: str,
    tier: str,
    user_id: str,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """Verify a client-relayed payment callback and settle it exactly once."""
    if not user_id:
        return VerificationResult.failure(AuthenticationError())

    if not verify_payment_signature(secret, order_id, payment_id, signature):
        logger.warning("Invalid payment signature user=%s order=%s payment=%s", user_id, order_id, payment_id)
        return VerificationResult.failure(InvalidSignature())

    try:
        plan = resolve_tier(tier)
    except CoinServiceError as exc:
        logger.warning("Invalid tier %r in payment callback user=%s payment=%s", tier, user_id, payment_id)
        return VerificationResult.failure(exc)

    try:
        await _settle(db, user_id=user_id, order_id=order_id, payment_id=payment_id, plan=plan, now=now)
    except (AlreadyProcessed, OrderMismatch, AuthenticationError) as exc:
        await db.rollback()
        logger.warning("Payment %s rejected for user %s: %s", payment_id, user_id, exc.detail or exc.message)
        return VerificationResult.failure(exc)
    except AccountNotFound:
        await db.rollback()
        return VerificationResult.failure(AuthenticationError())
    except StorageError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Payment settlement failed user=%s payment=%s", user_id, payment_id)
        raise StorageError(detail=str(exc)) from exc

    logger.info(
        "payment_verified user=%s tier=%s payment=%s coins=%s",
        user_id,
        plan.tier.value,
        payment_id,
        plan.monthly_coins,
    )

    await record_event(
        db,
        user_id,
        "subscription_purchase",
        {
            "tier": plan.tier.value,
            "payment_id": payment_id,
            "order_id": order_id,
            "amount": plan.price_minor_units,
            "coins_granted": plan.monthly_coins,
        },
    )

    result = await db.execute(select(User.coin_balance, User.subscription_tier).where(User.id == user_id))
    balance, subscription_tier = result.one()
    return VerificationResult(
        success=True,
        message="Payment verified and coins credited",
        coins=int(balance),
        subscription=subscription_tier,
        coins_granted=plan.monthly_coins,
    )
