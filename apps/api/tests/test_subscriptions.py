from datetime import datetime, timedelta, timezone

import pytest

from conftest import create_account
from services.exceptions import AccountNotFound
from services.ledger import get_balance
from services.subscriptions import add_one_month, cancel_subscription, get_subscription_status, set_subscription


def test_add_one_month_keeps_day_of_month():
    start = datetime(2026, 3, 15, 10, 30, tzinfo=timezone.utc)
    assert add_one_month(start) == datetime(2026, 4, 15, 10, 30, tzinfo=timezone.utc)


def test_add_one_month_clamps_to_shorter_month():
    assert add_one_month(datetime(2026, 1, 31, tzinfo=timezone.utc)).date().isoformat() == "2026-02-28"
    assert add_one_month(datetime(2028, 1, 31, tzinfo=timezone.utc)).date().isoformat() == "2028-02-29"


def test_add_one_month_rolls_over_year():
    assert add_one_month(datetime(2026, 12, 20, tzinfo=timezone.utc)) == datetime(2027, 1, 20, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_new_account_is_on_free_tier(session_maker):
    await create_account(session_maker, "user_a")

    async with session_maker() as session:
        status = await get_subscription_status(session, "user_a")

    assert status["active"] is False
    assert status["tier"] == "free"
    assert status["end_date"] is None


@pytest.mark.asyncio
async def test_set_subscription_activates_tier_for_one_month(session_maker):
    await create_account(session_maker, "user_a", coins=4)
    now = datetime(2026, 5, 10, tzinfo=timezone.utc)

    async with session_maker() as session:
        await set_subscription(session, "user_a", tier="pro", payment_id="pay_1", now=now)
        await session.commit()

    async with session_maker() as session:
        status = await get_subscription_status(session, "user_a", now=now + timedelta(days=1))
        expired = await get_subscription_status(session, "user_a", now=now + timedelta(days=40))
        assert await get_balance(session, "user_a") == 4

    assert status["active"] is True
    assert status["tier"] == "pro"
    assert status["end_date"].startswith("2026-06-10")
    assert expired["active"] is False
    assert expired["tier"] == "free"


@pytest.mark.asyncio
async def test_cancel_keeps_granted_coins(session_maker):
    await create_account(session_maker, "user_a", coins=50)

    async with session_maker() as session:
        await set_subscription(session, "user_a", tier="plus", payment_id="pay_1")
        await session.commit()
        result = await cancel_subscription(session, "user_a")

    assert result == {"tier": "free", "cancelled": True}

    async with session_maker() as session:
        status = await get_subscription_status(session, "user_a")
        assert status["tier"] == "free"
        assert await get_balance(session, "user_a") == 50


@pytest.mark.asyncio
async def test_subscription_calls_for_missing_account_raise(session_maker):
    async with session_maker() as session:
        with pytest.raises(AccountNotFound):
            await get_subscription_status(session, "ghost")
        with pytest.raises(AccountNotFound):
            await set_subscription(session, "ghost", tier="plus", payment_id="pay_1")
        await session.rollback()
        with pytest.raises(AccountNotFound):
            await cancel_subscription(session, "ghost")
