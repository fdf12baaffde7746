"""Subscription tier table."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from services.exceptions import InvalidTier


class SubscriptionTier(str, Enum):
    FREE = "free"
    PLUS = "plus"
    PRO = "pro"
    ULTRA = "ultra"


@dataclass(frozen=True)
class TierPlan:
    tier: SubscriptionTier
    name: str
    monthly_coins: int
    price_minor_units: int
    features: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "name": self.name,
            "coins": self.monthly_coins,
            "price": self.price_minor_units,
            "features": list(self.features),
        }


TIER_TABLE: Dict[SubscriptionTier, TierPlan] = {
    SubscriptionTier.FREE: TierPlan(
        tier=SubscriptionTier.FREE,
        name="Free",
        monthly_coins=10,
        price_minor_units=0,
        features=("10 coins/month", "Basic recipe search", "Limited AI chat"),
    ),
    SubscriptionTier.PLUS: TierPlan(
        tier=SubscriptionTier.PLUS,
        name="Plus",
        monthly_coins=50,
        price_minor_units=499,
        features=("50 coins/month", "Advanced search", "AI recipe generation", "Save favorites"),
    ),
    SubscriptionTier.PRO: TierPlan(
        tier=SubscriptionTier.PRO,
        name="Pro",
        monthly_coins=150,
        price_minor_units=999,
        features=("150 coins/month", "Unlimited search", "Priority AI responses", "Meal planning"),
    ),
    SubscriptionTier.ULTRA: TierPlan(
        tier=SubscriptionTier.ULTRA,
        name="Ultra",
        monthly_coins=500,
        price_minor_units=1999,
        features=("500 coins/month", "All Pro features", "Custom AI training", "Nutrition tracking"),
    ),
}


def resolve_tier(name: Any) -> TierPlan:
    """Return the plan for a tier name or raise InvalidTier."""
    try:
        tier = SubscriptionTier(str(name or "").strip().lower())
    except ValueError as exc:
        raise InvalidTier(detail=f"unknown tier {name!r}") from exc
    plan = TIER_TABLE.get(tier)
    if plan is None:
        raise InvalidTier(detail=f"tier {tier.value} has no plan")
    return plan


def list_plans() -> List[Dict[str, Any]]:
    return [TIER_TABLE[tier].to_dict() for tier in SubscriptionTier if tier in TIER_TABLE]


def validate_tier_table(
    table: Dict[SubscriptionTier, TierPlan] = TIER_TABLE,
    accepted_tiers: Iterable[str] = (),
) -> None:
    """Fail fast when the tier table disagrees with the tiers accepted elsewhere."""
    expected = {tier.value for tier in SubscriptionTier} | {str(t) for t in accepted_tiers}
    configured = {tier.value for tier in table}
    missing = sorted(expected - configured)
    if missing:
        raise ValueError(f"Tier table is missing plans for: {', '.join(missing)}")

    for tier, plan in table.items():
        if plan.tier != tier:
            raise ValueError(f"Tier table entry {tier.value} describes {plan.tier.value}")
        if int(plan.monthly_coins) <= 0:
            raise ValueError(f"Tier {tier.value} must grant a positive number of coins")
        if int(plan.price_minor_units) < 0:
            raise ValueError(f"Tier {tier.value} has a negative price")
