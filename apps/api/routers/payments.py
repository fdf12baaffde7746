"""Payments router: plans, order creation, callback verification and subscription state."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from routers.responses import failure_response
from services.exceptions import AccountNotFound, AuthenticationError, PaymentProviderError
from services.ledger import get_balance
from services.payment_orders import create_order
from services.payment_provider import RazorpayClient
from services.payment_verification import verify_payment
from services.subscriptions import cancel_subscription, get_subscription_status
from services.tiers import list_plans

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateOrderRequest(BaseModel):
    amount: Any = None
    currency: Optional[str] = None
    receipt: Optional[str] = None
    notes: Optional[Dict[str, Any]] = None
    tier: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)
    tier: str = Field(min_length=1)


def get_payment_client() -> Optional[RazorpayClient]:
    try:
        return RazorpayClient.from_settings()
    except PaymentProviderError as exc:
        logger.error("Payment provider unavailable: %s", exc.detail)
        return None


async def _require_account(db: AsyncSession, user_id: str) -> None:
    try:
        await get_balance(db, user_id)
    except AccountNotFound as exc:
        raise AuthenticationError() from exc


@router.get("/plans")
async def plans():
    return {"plans": list_plans(), "currency": settings.PAYMENT_CURRENCY}


@router.post("/orders")
async def create_payment_order(
    request: CreateOrderRequest,
    _rate_limit: None = Depends(
        rate_limit(
            "payment_orders",
            limit=settings.RATE_LIMIT_PAYMENTS_LIMIT,
            window_seconds=settings.RATE_LIMIT_PAYMENTS_WINDOW_SECONDS,
        )
    ),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    client: Optional[RazorpayClient] = Depends(get_payment_client),
):
    await _require_account(db, auth.user_id)
    order = await create_order(
        db,
        client,
        user_id=auth.user_id,
        amount=request.amount,
        currency=request.currency,
        notes=request.notes,
        receipt=request.receipt,
        tier=request.tier,
    )
    return {
        "order": order["order"],
        "order_id": order["order_id"],
        "key_id": order["key_id"],
        "amount": order["amount"],
        "currency": order["currency"],
    }


@router.post("/verify")
async def verify(
    request: VerifyPaymentRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Verify a checkout callback relayed by the client and credit the tier's coins."""
    result = await verify_payment(
        db,
        secret=settings.RAZORPAY_KEY_SECRET,
        order_id=request.razorpay_order_id,
        payment_id=request.razorpay_payment_id,
        signature=request.razorpay_signature,
        tier=request.tier,
        user_id=auth.user_id,
    )
    if not result.success:
        return failure_response(result.error, result.error_code, result.status_code)
    return {
        "success": True,
        "message": result.message,
        "coins": result.coins,
        "subscription": result.subscription,
        "coins_granted": result.coins_granted,
    }


@router.get("/subscription")
async def subscription_status(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await get_subscription_status(db, auth.user_id)
    except AccountNotFound as exc:
        raise AuthenticationError() from exc


@router.post("/subscription/cancel")
async def subscription_cancel(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        result = await cancel_subscription(db, auth.user_id)
    except AccountNotFound as exc:
        raise AuthenticationError() from exc
    return {"success": True, **result}
