"""Loyalty tiers.

Tier is decided by lifetime points so that spending points never demotes a
customer. Each tier grants a standing percentage discount and an earning
multiplier on every R$1 paid.
"""

import math
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LoyaltyTier:
    slug: str
    name: str
    min_points: int
    discount_percentage: Decimal
    earn_multiplier: Decimal


LOYALTY_TIERS = (
    LoyaltyTier("bronze", "Bronze", 0, Decimal("0"), Decimal("1")),
    LoyaltyTier("silver", "Silver", 500, Decimal("5"), Decimal("1.5")),
    LoyaltyTier("gold", "Gold", 1500, Decimal("10"), Decimal("2")),
    LoyaltyTier("platinum", "Platinum", 3000, Decimal("15"), Decimal("3")),
)


def tier_for_points(points: int) -> LoyaltyTier:
    for tier in reversed(LOYALTY_TIERS):
        if points >= tier.min_points:
            return tier
    return LOYALTY_TIERS[0]


def next_tier(points: int) -> tuple[LoyaltyTier | None, int]:
    """Return the next tier and how many points are still needed for it."""

    current = tier_for_points(points)
    index = LOYALTY_TIERS.index(current)
    if index == len(LOYALTY_TIERS) - 1:
        return None, 0
    upcoming = LOYALTY_TIERS[index + 1]
    return upcoming, upcoming.min_points - points


def points_earned(amount: Decimal, tier: LoyaltyTier) -> int:
    return int(math.floor(Decimal(amount) * tier.earn_multiplier))
