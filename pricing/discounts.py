"""Discount composition for a checkout.

``compose_discounts`` is pure: it works only on the snapshots it is given and
never touches the database, so running it twice on the same input gives the
same ``DiscountStack``. Sources are applied coupon, referral, loyalty, then gift
card. A source that fails validation is reported as a rejection and skipped;
the remaining sources still apply.

Coupon, referral and loyalty discount the merchandise (capped at what is left
of the subtotal). A gift card pays whatever is left of subtotal plus shipping.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Optional

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

SOURCE_COUPON = "coupon"
SOURCE_REFERRAL = "referral"
SOURCE_LOYALTY = "loyalty"
SOURCE_GIFT_CARD = "gift_card"

KIND_PERCENTAGE = "percentage"
KIND_FIXED = "fixed"

# 100 points = R$10.00
DEFAULT_POINT_VALUE = Decimal("0.10")

REJECTION_MESSAGES = {
    "not_found": "Code not found.",
    "invalid_format": "Code format is invalid.",
    "inactive": "This code is no longer active.",
    "not_started": "This code is not valid yet.",
    "expired": "This code has expired.",
    "exhausted": "This code has reached its usage limit.",
    "min_purchase": "Minimum purchase of R$ {min_purchase} not reached.",
    "insufficient_points": "Not enough loyalty points.",
    "zero_balance": "This gift card has no balance left.",
}


def money(value) -> Decimal:
    """Quantize to cents, rounding half up."""

    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Promotion:
    """What a promotion store reports for one code.

    ``exists=False`` means the store has no such code; ``well_formed=False``
    means the code was rejected before lookup. ``usage_remaining`` is None for
    unlimited codes. For gift cards ``value`` is the current balance.
    """

    code: str
    kind: str = KIND_FIXED
    value: Decimal = ZERO
    active: bool = True
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    usage_remaining: Optional[int] = None
    min_purchase: Decimal = ZERO
    exists: bool = True
    well_formed: bool = True

    @classmethod
    def missing(cls, code: str) -> "Promotion":
        return cls(code=code, exists=False)

    @classmethod
    def malformed(cls, code: str) -> "Promotion":
        return cls(code=code, exists=False, well_formed=False)


@dataclass(frozen=True)
class LoyaltyRedemption:
    points_balance: int
    points_to_redeem: int = 0
    tier: str = "bronze"
    tier_percentage: Decimal = ZERO
    point_value: Decimal = DEFAULT_POINT_VALUE


@dataclass(frozen=True)
class AppliedDiscount:
    source: str
    code: str
    amount: Decimal
    remaining_balance: Optional[Decimal] = None
    points_used: Optional[int] = None


@dataclass(frozen=True)
class DiscountRejection:
    source: str
    code: str
    reason: str
    message: str


@dataclass(frozen=True)
class DiscountStack:
    subtotal: Decimal
    shipping_cost: Decimal
    applied: tuple[AppliedDiscount, ...] = field(default_factory=tuple)
    rejections: tuple[DiscountRejection, ...] = field(default_factory=tuple)
    discount: Decimal = ZERO
    final_total: Decimal = ZERO

    def applied_for(self, source: str) -> Optional[AppliedDiscount]:
        for entry in self.applied:
            if entry.source == source:
                return entry
        return None

    def amount_for(self, source: str) -> Decimal:
        entry = self.applied_for(source)
        return entry.amount if entry else ZERO

    def code_for(self, source: str) -> str:
        entry = self.applied_for(source)
        return entry.code if entry else ""


def _reject(source: str, code: str, reason: str, **fmt) -> DiscountRejection:
    return DiscountRejection(
        source=source,
        code=code,
        reason=reason,
        message=REJECTION_MESSAGES[reason].format(**fmt),
    )


def _check_promotion(source: str, promo: Promotion, subtotal: Decimal, now: datetime) -> Optional[DiscountRejection]:
    if not promo.well_formed:
        return _reject(source, promo.code, "invalid_format")
    if not promo.exists:
        return _reject(source, promo.code, "not_found")
    if not promo.active:
        return _reject(source, promo.code, "inactive")
    if promo.starts_at and now < promo.starts_at:
        return _reject(source, promo.code, "not_started")
    if promo.expires_at and now > promo.expires_at:
        return _reject(source, promo.code, "expired")
    if promo.usage_remaining is not None and promo.usage_remaining <= 0:
        return _reject(source, promo.code, "exhausted")
    if promo.min_purchase and subtotal < promo.min_purchase:
        return _reject(source, promo.code, "min_purchase", min_purchase=money(promo.min_purchase))
    return None


def _promotion_amount(promo: Promotion, subtotal: Decimal) -> Decimal:
    if promo.kind == KIND_PERCENTAGE:
        return money(subtotal * Decimal(promo.value) / Decimal(100))
    return money(promo.value)


def compose_discounts(
    subtotal,
    shipping_cost,
    *,
    coupon: Optional[Promotion] = None,
    referral: Optional[Promotion] = None,
    loyalty: Optional[LoyaltyRedemption] = None,
    gift_card: Optional[Promotion] = None,
    now: datetime,
) -> DiscountStack:
    subtotal = money(subtotal)
    shipping_cost = money(shipping_cost)
    applied: list[AppliedDiscount] = []
    rejections: list[DiscountRejection] = []
    merchandise_left = subtotal

    for source, promo in ((SOURCE_COUPON, coupon), (SOURCE_REFERRAL, referral)):
        if promo is None:
            continue
        rejection = _check_promotion(source, promo, subtotal, now)
        if rejection:
            rejections.append(rejection)
            continue
        amount = min(_promotion_amount(promo, subtotal), merchandise_left)
        merchandise_left -= amount
        applied.append(AppliedDiscount(source=source, code=promo.code, amount=amount))

    if loyalty is not None:
        if loyalty.points_to_redeem < 0 or loyalty.points_to_redeem > loyalty.points_balance:
            rejections.append(_reject(SOURCE_LOYALTY, loyalty.tier, "insufficient_points"))
        else:
            tier_amount = min(money(subtotal * Decimal(loyalty.tier_percentage) / Decimal(100)), merchandise_left)
            merchandise_left -= tier_amount
            points_used = 0
            points_amount = ZERO
            if loyalty.points_to_redeem and merchandise_left > 0:
                per_point = Decimal(loyalty.point_value)
                points_amount = min(money(loyalty.points_to_redeem * per_point), merchandise_left)
                points_used = min(
                    loyalty.points_to_redeem,
                    int((points_amount / per_point).to_integral_value(rounding=ROUND_CEILING)),
                )
                merchandise_left -= points_amount
            amount = tier_amount + points_amount
            if amount > 0:
                applied.append(
                    AppliedDiscount(source=SOURCE_LOYALTY, code=loyalty.tier, amount=amount, points_used=points_used)
                )

    if gift_card is not None:
        rejection = _check_promotion(SOURCE_GIFT_CARD, gift_card, subtotal, now)
        if rejection is None and money(gift_card.value) <= 0:
            rejection = _reject(SOURCE_GIFT_CARD, gift_card.code, "zero_balance")
        if rejection:
            rejections.append(rejection)
        else:
            payable = merchandise_left + shipping_cost
            balance = money(gift_card.value)
            amount = min(balance, payable)
            applied.append(
                AppliedDiscount(
                    source=SOURCE_GIFT_CARD,
                    code=gift_card.code,
                    amount=amount,
                    remaining_balance=balance - amount,
                )
            )

    discount = sum((entry.amount for entry in applied), ZERO)
    final_total = max(subtotal + shipping_cost - discount, ZERO)
    return DiscountStack(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        applied=tuple(applied),
        rejections=tuple(rejections),
        discount=discount,
        final_total=final_total,
    )
