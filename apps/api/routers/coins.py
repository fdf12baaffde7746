"""Coin balance, history and spend router."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, StrictInt
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.responses import failure_response
from services.coins import charge_coins
from services.exceptions import AccountNotFound, AuthenticationError
from services.ledger import TransactionType, get_balance, list_transactions, reconcile, serialize_transaction

router = APIRouter()


class ChargeRequest(BaseModel):
    # Strict so JSON booleans, floats and numeric strings are not coerced.
    amount: StrictInt
    description: str = Field(min_length=1, max_length=200)
    related_entity_id: Optional[str] = None


async def _balance_or_401(db: AsyncSession, user_id: str) -> int:
    try:
        return await get_balance(db, user_id)
    except AccountNotFound as exc:
        raise AuthenticationError() from exc


@router.get("")
async def coin_summary(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    balance = await _balance_or_401(db, auth.user_id)
    entries = await list_transactions(db, auth.user_id, limit=20)
    return {
        "balance": balance,
        "costs": {
            "chat_message": max(int(settings.COIN_COST_CHAT_MESSAGE), 1),
            "recipe_generation": max(int(settings.COIN_COST_RECIPE_GENERATION), 1),
        },
        "recent_transactions": [serialize_transaction(entry) for entry in entries],
    }


@router.get("/transactions")
async def coin_transactions(
    limit: int = Query(default=50, ge=1, le=200),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await _balance_or_401(db, auth.user_id)
    capped = min(limit, max(int(settings.RECENT_TRANSACTIONS_LIMIT), 1))
    entries = await list_transactions(db, auth.user_id, limit=capped)
    return {
        "transactions": [serialize_transaction(entry) for entry in entries],
        "count": len(entries),
    }


@router.get("/reconcile")
async def coin_reconcile(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await reconcile(db, auth.user_id)
    except AccountNotFound as exc:
        raise AuthenticationError() from exc


@router.post("/charge")
async def charge(
    request: ChargeRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Spend coins on a client-side feature."""
    result = await charge_coins(
        db,
        auth.user_id,
        request.amount,
        transaction_type=TransactionType.SPENT.value,
        description=request.description,
        related_entity_id=request.related_entity_id,
    )
    if not result.success:
        return failure_response(result.error, result.error_code, balance=result.balance_after)
    return {"success": True, "balance": result.balance_after, "transaction_id": result.transaction_id}
