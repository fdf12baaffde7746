import pytest

from services.exceptions import InvalidTier
from services.tiers import TIER_TABLE, SubscriptionTier, TierPlan, list_plans, resolve_tier, validate_tier_table


@pytest.mark.parametrize(
    "name,coins,price",
    [("free", 10, 0), ("plus", 50, 499), ("pro", 150, 999), ("ultra", 500, 1999)],
)
def test_tier_table_values(name, coins, price):
    plan = resolve_tier(name)
    assert plan.monthly_coins == coins
    assert plan.price_minor_units == price


def test_resolve_tier_is_case_insensitive():
    assert resolve_tier(" PRO ").tier is SubscriptionTier.PRO


@pytest.mark.parametrize("name", ["platinum", "", None])
def test_unknown_tier_is_rejected(name):
    with pytest.raises(InvalidTier):
        resolve_tier(name)


def test_list_plans_is_ordered_and_serializable():
    plans = list_plans()
    assert [plan["tier"] for plan in plans] == ["free", "plus", "pro", "ultra"]
    assert plans[1]["coins"] == 50
    assert plans[1]["price"] == 499
    assert isinstance(plans[1]["features"], list)


def test_validate_tier_table_accepts_shipped_table():
    validate_tier_table()


def test_validate_tier_table_rejects_missing_plan():
    table = {tier: plan for tier, plan in TIER_TABLE.items() if tier is not SubscriptionTier.ULTRA}
    with pytest.raises(ValueError, match="ultra"):
        validate_tier_table(table)


def test_validate_tier_table_rejects_unconfigured_accepted_tier():
    with pytest.raises(ValueError, match="family"):
        validate_tier_table(accepted_tiers=["family"])


def test_validate_tier_table_rejects_zero_coin_plan():
    table = dict(TIER_TABLE)
    table[SubscriptionTier.PLUS] = TierPlan(SubscriptionTier.PLUS, "Plus", 0, 499)
    with pytest.raises(ValueError):
        validate_tier_table(table)
