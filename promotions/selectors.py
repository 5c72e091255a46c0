"""Snapshot lookups consumed by checkout pricing.

Each ``*_snapshot`` returns None when no code was given, and otherwise a
``Promotion`` describing what the store knows, including "not found" and
"malformed" so the discount composer can report them.
"""

import re
from typing import Optional

from django.conf import settings
from pricing.discounts import KIND_FIXED, LoyaltyRedemption, Promotion

from .models import Coupon, GiftCard, LoyaltyAccount, ReferralCode

COUPON_CODE_RE = re.compile(r"^[A-Z0-9_-]{3,40}$")
REFERRAL_CODE_RE = re.compile(r"^[A-Z0-9]{6,32}$")


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def gift_card_code_pattern() -> re.Pattern:
    prefix = re.escape(getattr(settings, "GIFT_CARD_PREFIX", "MPZEN"))
    return re.compile(rf"^{prefix}-[A-Z0-9]{{8}}-\d{{2}}$")


def _remaining(limit: Optional[int], used: int) -> Optional[int]:
    if limit is None:
        return None
    return max(int(limit) - int(used), 0)


def coupon_snapshot(code: Optional[str]) -> Optional[Promotion]:
    code = normalize_code(code)
    if not code:
        return None
    if not COUPON_CODE_RE.match(code):
        return Promotion.malformed(code)
    try:
        coupon = Coupon.objects.get(code=code)
    except Coupon.DoesNotExist:
        return Promotion.missing(code)
    return Promotion(
        code=coupon.code,
        kind=coupon.kind,
        value=coupon.value,
        active=coupon.active,
        starts_at=coupon.valid_from,
        expires_at=coupon.valid_until,
        usage_remaining=_remaining(coupon.max_uses, coupon.used_count),
        min_purchase=coupon.min_purchase,
    )


def referral_snapshot(code: Optional[str]) -> Optional[Promotion]:
    code = normalize_code(code)
    if not code:
        return None
    if not REFERRAL_CODE_RE.match(code):
        return Promotion.malformed(code)
    try:
        referral = ReferralCode.objects.get(code=code)
    except ReferralCode.DoesNotExist:
        return Promotion.missing(code)
    return Promotion(
        code=referral.code,
        kind=referral.kind,
        value=referral.value,
        active=referral.active,
        expires_at=referral.expires_at,
        usage_remaining=_remaining(referral.usage_limit, referral.usage_count),
    )


def gift_card_snapshot(code: Optional[str]) -> Optional[Promotion]:
    code = normalize_code(code)
    if not code:
        return None
    if not gift_card_code_pattern().match(code):
        return Promotion.malformed(code)
    try:
        card = GiftCard.objects.get(code=code)
    except GiftCard.DoesNotExist:
        return Promotion.missing(code)
    return Promotion(
        code=card.code,
        kind=KIND_FIXED,
        value=card.balance,
        active=card.active,
        expires_at=card.expires_at,
    )


def loyalty_snapshot(user, points_to_redeem: int = 0) -> Optional[LoyaltyRedemption]:
    """Loyalty input for a registered user; None for guests, or for users with no account redeeming nothing."""

    if user is None or not getattr(user, "is_authenticated", False):
        return None
    try:
        account = LoyaltyAccount.objects.get(user=user)
    except LoyaltyAccount.DoesNotExist:
        if points_to_redeem:
            return LoyaltyRedemption(points_balance=0, points_to_redeem=int(points_to_redeem))
        return None
    tier = account.tier
    return LoyaltyRedemption(
        points_balance=account.points,
        points_to_redeem=int(points_to_redeem or 0),
        tier=tier.slug,
        tier_percentage=tier.discount_percentage,
        point_value=getattr(settings, "LOYALTY_POINT_VALUE", LoyaltyRedemption.point_value),
    )
