"""Paid AI router: every call is charged before the model runs and refunded if it fails."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from routers.responses import failure_response
from services.analytics import record_event
from services.coins import CoinResult, charge_coins, refund_coins
from services.exceptions import InsufficientCoins, LLMProviderError
from services.llm import generate_chat_reply, generate_recipe

router = APIRouter()
logger = logging.getLogger(__name__)

INSUFFICIENT_COINS_MESSAGE = "Insufficient coins. Please purchase more coins to continue."
REFUNDED_MESSAGE = "AI service unavailable. Your coins have been refunded."

paid_ai_rate_limit = rate_limit(
    "paid_ai",
    limit=settings.RATE_LIMIT_PAID_AI_LIMIT,
    window_seconds=settings.RATE_LIMIT_PAID_AI_WINDOW_SECONDS,
)


class ChatMessage(BaseModel):
    role: str = "user"
    text: str = ""


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)
    conversation_id: Optional[str] = None
    dietary_preferences: Optional[str] = None


class GenerateRecipeRequest(BaseModel):
    ingredients: List[str] = Field(default_factory=list)
    dietary_preferences: Optional[str] = None


def _charge_failure(result: CoinResult):
    if result.error_code == InsufficientCoins.error_code:
        return failure_response(INSUFFICIENT_COINS_MESSAGE, result.error_code, balance=result.balance_after)
    return failure_response(result.error, result.error_code)


async def _refund(db: AsyncSession, user_id: str, cost: int, description: str, related_entity_id=None):
    refund = await refund_coins(db, user_id, cost, description, related_entity_id=related_entity_id)
    if not refund.success:
        logger.error("Refund of %s coins failed for user %s: %s", cost, user_id, refund.error)
    return failure_response(REFUNDED_MESSAGE, LLMProviderError.error_code)


@router.post("/chat")
async def chat(
    request: ChatRequest,
    _rate_limit: None = Depends(paid_ai_rate_limit),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    cost = max(int(settings.COIN_COST_CHAT_MESSAGE), 1)
    description = "Chat message"
    charged = await charge_coins(
        db,
        auth.user_id,
        cost,
        description=description,
        related_entity_id=request.conversation_id,
    )
    if not charged.success:
        return _charge_failure(charged)

    try:
        reply = await generate_chat_reply(
            [message.model_dump() for message in request.messages],
            request.dietary_preferences,
        )
    except Exception as exc:
        logger.warning("Chat generation failed for user %s: %s", auth.user_id, exc)
        return await _refund(db, auth.user_id, cost, description, request.conversation_id)

    await record_event(
        db,
        auth.user_id,
        "ai_chat",
        {"conversation_id": request.conversation_id, "coins_spent": cost},
    )
    return {"message": reply, "coinCost": cost, "balance": charged.balance_after}


@router.post("/generate-recipe")
async def generate_recipe_endpoint(
    request: GenerateRecipeRequest,
    _rate_limit: None = Depends(paid_ai_rate_limit),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    cost = max(int(settings.COIN_COST_RECIPE_GENERATION), 1)
    description = "Recipe generation"
    charged = await charge_coins(db, auth.user_id, cost, description=description)
    if not charged.success:
        return _charge_failure(charged)

    try:
        recipe = await generate_recipe(request.ingredients, request.dietary_preferences)
    except Exception as exc:
        logger.warning("Recipe generation failed for user %s: %s", auth.user_id, exc)
        return await _refund(db, auth.user_id, cost, description)

    await record_event(
        db,
        auth.user_id,
        "recipe_generated",
        {"ingredients": request.ingredients, "coins_spent": cost},
    )
    return {"recipe": recipe, "coinCost": cost, "balance": charged.balance_after}
