"""
Account router: sync the identity provider's user into a local account and
expose the profile.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.user import User
from routers.auth_scope import AuthContext, get_auth_context
from services.coins import grant_coins
from services.exceptions import AccountConflict, AuthenticationError, InvalidRequest
from services.ledger import TransactionType

router = APIRouter()
logger = logging.getLogger(__name__)


class SyncAccountRequest(BaseModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class UpdateProfileRequest(BaseModel):
    # Balance and subscription fields are not writable through the profile.
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class AccountResponse(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    coin_balance: int
    subscription_tier: str
    subscription_end_date: Optional[str] = None
    created: bool = False


async def _load_account(db: AsyncSession, user_id: str) -> AccountResponse:
    result = await db.execute(
        select(
            User.id,
            User.email,
            User.full_name,
            User.avatar_url,
            User.coin_balance,
            User.subscription_tier,
            User.subscription_end_date,
        ).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise AuthenticationError(detail=f"user {user_id} has no account")
    return AccountResponse(
        user_id=row.id,
        email=row.email,
        full_name=row.full_name,
        avatar_url=row.avatar_url,
        coin_balance=int(row.coin_balance),
        subscription_tier=row.subscription_tier,
        subscription_end_date=row.subscription_end_date.isoformat() if row.subscription_end_date else None,
    )


@router.post("/sync", response_model=AccountResponse)
async def sync_account(
    request: SyncAccountRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create the caller's account on first sight; later calls refresh profile fields."""
    existing = await db.execute(select(User.id).where(User.id == auth.user_id))
    if existing.scalar_one_or_none() is not None:
        values = {
            key: value
            for key, value in {"full_name": request.full_name, "avatar_url": request.avatar_url}.items()
            if value
        }
        if values:
            await db.execute(update(User).where(User.id == auth.user_id).values(**values))
            await db.commit()
        return await _load_account(db, auth.user_id)

    email = request.email or auth.email
    if not email:
        raise InvalidRequest("Email is required to create an account", detail=f"user {auth.user_id} has no email")

    db.add(
        User(
            id=auth.user_id,
            email=email,
            full_name=request.full_name,
            avatar_url=request.avatar_url,
            coin_balance=0,
        )
    )
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise AccountConflict(detail=f"email {email} already registered") from exc

    bonus = max(int(settings.SIGNUP_BONUS_COINS), 0)
    if bonus:
        result = await grant_coins(
            db,
            auth.user_id,
            bonus,
            transaction_type=TransactionType.BONUS.value,
            description="Welcome bonus",
        )
        if not result.success:
            logger.warning("Welcome bonus failed for user %s: %s", auth.user_id, result.error)

    logger.info("account_created user=%s bonus=%s", auth.user_id, bonus)
    account = await _load_account(db, auth.user_id)
    account.created = True
    return account


@router.get("/me", response_model=AccountResponse)
async def get_me(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await _load_account(db, auth.user_id)


@router.patch("/me", response_model=AccountResponse)
async def update_me(
    request: UpdateProfileRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    values = request.model_dump(exclude_unset=True)
    if values:
        result = await db.execute(update(User).where(User.id == auth.user_id).values(**values))
        if result.rowcount == 0:
            await db.rollback()
            raise AuthenticationError(detail=f"user {auth.user_id} has no account")
        await db.commit()
    return await _load_account(db, auth.user_id)
