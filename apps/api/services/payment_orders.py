"""Payment order creation."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.payment_order import PaymentOrder
from services.exceptions import InvalidAmount, PaymentProviderError, StorageError
from services.payment_provider import RazorpayClient
from services.tiers import resolve_tier

logger = logging.getLogger(__name__)


def default_receipt() -> str:
    return f"{settings.PAYMENT_RECEIPT_PREFIX}_{int(time.time() * 1000)}"


async def create_order(
    db: AsyncSession,
    client: Optional[RazorpayClient],
    *,
    user_id: str,
    amount: Any,
    currency: Optional[str] = None,
    notes: Optional[Dict[str, Any]] = None,
    receipt: Optional[str] = None,
    tier: Optional[str] = None,
) -> Dict[str, Any]:
    """Create an order upstream and remember it for verification.

    ``amount`` is in minor currency units. Creating an order has no effect on
    the coin ledger.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(detail=f"amount={amount!r}")

    if client is None:
        raise PaymentProviderError("Payment provider is not configured", detail="no client configured")

    plan = resolve_tier(tier) if tier else None
    order_currency = (currency or settings.PAYMENT_CURRENCY).upper()
    order_receipt = receipt or default_receipt()
    order_notes = {str(k): str(v) for k, v in (notes or {}).items()}
    order_notes["user_id"] = user_id
    if plan is not None:
        order_notes["tier"] = plan.tier.value

    order = await client.create_order(
        amount=amount,
        currency=order_currency,
        receipt=order_receipt,
        notes=order_notes,
    )
    order_id = str(order["id"])

    try:
        db.add(
            PaymentOrder(
                order_id=order_id,
                user_id=user_id,
                amount=int(order.get("amount", amount)),
                currency=str(order.get("currency", order_currency)),
                receipt=order_receipt,
                tier=plan.tier.value if plan else None,
                notes_json=order_notes,
                status="created",
            )
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Could not store payment order %s for user %s", order_id, user_id)
        raise StorageError(detail=str(exc)) from exc

    logger.info("payment_order_created user=%s order=%s amount=%s %s", user_id, order_id, amount, order_currency)
    return {
        "order_id": order_id,
        "key_id": client.key_id,
        "amount": int(order.get("amount", amount)),
        "currency": str(order.get("currency", order_currency)),
        "receipt": order_receipt,
        "order": order,
    }
