"""Promotion services: issuing codes and applying an order's credits.

Gift card balance, loyalty points and one use of each coupon or referral code
are taken when the order is placed and given back if it never gets paid.
Loyalty points are earned only once the order is paid. Every balance change
is logged with the order reference, which also makes each step idempotent.
"""

import logging
import secrets
import string
from datetime import timedelta
from decimal import Decimal

from common.choices import DiscountKind
from common.exceptions import ValidationFailed
from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from .models import (
    CodeRedemption,
    Coupon,
    GiftCard,
    GiftCardTransaction,
    LoyaltyAccount,
    LoyaltyTransaction,
    ReferralCode,
)
from .selectors import normalize_code
from .tiers import points_earned

logger = logging.getLogger("storefront.promotions")

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_gift_card_code() -> str:
    prefix = getattr(settings, "GIFT_CARD_PREFIX", "MPZEN")
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(8))
    return f"{prefix}-{body}-{secrets.randbelow(100):02d}"


def generate_referral_code(name: str) -> str:
    stem = "".join(ch for ch in (name or "").upper() if ch in CODE_ALPHABET)[:4]
    tail = "".join(secrets.choice(CODE_ALPHABET) for _ in range(8 - len(stem)))
    return f"{stem}{tail}"


@transaction.atomic
def issue_gift_card(
    *,
    value: Decimal,
    purchased_by=None,
    recipient_email: str = "",
    recipient_name: str = "",
    message: str = "",
) -> GiftCard:
    if Decimal(value) <= 0:
        raise ValidationFailed("Gift card value must be positive.")
    code = generate_gift_card_code()
    while GiftCard.objects.filter(code=code).exists():
        code = generate_gift_card_code()
    validity = int(getattr(settings, "GIFT_CARD_VALIDITY_DAYS", 365))
    card = GiftCard.objects.create(
        code=code,
        initial_value=value,
        balance=value,
        expires_at=timezone.now() + timedelta(days=validity),
        purchased_by=purchased_by,
        recipient_email=recipient_email,
        recipient_name=recipient_name,
        message=message,
    )
    logger.info("promotions.gift_card_issued", extra={"event": "promotions.gift_card_issued", "gift_card_id": card.id})
    return card


@transaction.atomic
def create_referral_code(
    *, owner, kind: str = DiscountKind.PERCENTAGE, value: Decimal = Decimal("10"), usage_limit=None
) -> ReferralCode:
    name = getattr(owner, "first_name", "") or getattr(owner, "username", "")
    code = generate_referral_code(name)
    while ReferralCode.objects.filter(code=code).exists():
        code = generate_referral_code(name)
    return ReferralCode.objects.create(code=code, owner=owner, kind=kind, value=value, usage_limit=usage_limit)


def _order_reference(order) -> str:
    return f"order:{order.number}"


# source -> (store, counter field, limit field, message when the limit is reached)
USAGE_COUNTERS = {
    CodeRedemption.SOURCE_COUPON: (Coupon, "used_count", "max_uses", "This coupon has reached its usage limit."),
    CodeRedemption.SOURCE_REFERRAL: (
        ReferralCode,
        "usage_count",
        "usage_limit",
        "This referral code has reached its usage limit.",
    ),
}


def _claim_code_use(source: str, code: str, reference: str) -> None:
    if CodeRedemption.objects.filter(source=source, reference=reference).exists():
        return
    model, counter, limit, message = USAGE_COUNTERS[source]
    code = normalize_code(code)
    updated = (
        model.objects.filter(code=code)
        .filter(Q(**{f"{limit}__isnull": True}) | Q(**{f"{counter}__lt": F(limit)}))
        .update(**{counter: F(counter) + 1, "updated_at": timezone.now()})
    )
    if updated != 1:
        raise ValidationFailed(message)
    CodeRedemption.objects.create(source=source, code=code, reference=reference)


def _release_code_uses(reference: str) -> None:
    for use in CodeRedemption.objects.select_for_update().filter(reference=reference, released_at__isnull=True):
        model, counter, _, _ = USAGE_COUNTERS[use.source]
        model.objects.filter(code=use.code, **{f"{counter}__gt": 0}).update(
            **{counter: F(counter) - 1, "updated_at": timezone.now()}
        )
        use.released_at = timezone.now()
        use.save(update_fields=["released_at"])


@transaction.atomic
def hold_order_credits(order) -> None:
    """Take what an order was priced with: code uses, gift card amount and points.

    A code whose usage limit was reached since pricing raises ValidationFailed,
    like a gift card whose balance moved.
    """
    reference = _order_reference(order)
    if order.coupon_code:
        _claim_code_use(CodeRedemption.SOURCE_COUPON, order.coupon_code, reference)
    if order.referral_code:
        _claim_code_use(CodeRedemption.SOURCE_REFERRAL, order.referral_code, reference)

    amount = Decimal(order.gift_card_amount or 0)
    if order.gift_card_code and amount > 0:
        try:
            card = GiftCard.objects.select_for_update().get(code=normalize_code(order.gift_card_code))
        except GiftCard.DoesNotExist:
            raise ValidationFailed("Gift card not found.")
        if card.balance < amount:
            raise ValidationFailed("Gift card balance changed. Please review your order.")
        card.balance = card.balance - amount
        card.save(update_fields=["balance", "updated_at"])
        GiftCardTransaction.objects.create(
            gift_card=card, kind=GiftCardTransaction.KIND_REDEMPTION, amount=-amount, reference=reference
        )

    points = int(order.loyalty_points_redeemed or 0)
    if points > 0:
        updated = LoyaltyAccount.objects.filter(user_id=order.user_id, points__gte=points).update(
            points=F("points") - points, updated_at=timezone.now()
        )
        if updated != 1:
            raise ValidationFailed("Not enough loyalty points.")
        account = LoyaltyAccount.objects.get(user_id=order.user_id)
        LoyaltyTransaction.objects.create(
            account=account, kind=LoyaltyTransaction.KIND_REDEEM, points=-points, reference=reference
        )


@transaction.atomic
def restore_order_credits(order) -> None:
    """Give back what ``hold_order_credits`` took; safe to call more than once."""

    reference = _order_reference(order)
    _release_code_uses(reference)
    for redemption in GiftCardTransaction.objects.select_related("gift_card").filter(
        reference=reference, kind=GiftCardTransaction.KIND_REDEMPTION
    ):
        if GiftCardTransaction.objects.filter(
            reference=reference, kind=GiftCardTransaction.KIND_REFUND, gift_card=redemption.gift_card
        ).exists():
            continue
        GiftCard.objects.filter(id=redemption.gift_card_id).update(
            balance=F("balance") - redemption.amount, updated_at=timezone.now()
        )
        GiftCardTransaction.objects.create(
            gift_card=redemption.gift_card,
            kind=GiftCardTransaction.KIND_REFUND,
            amount=-redemption.amount,
            reference=reference,
        )

    for spent in LoyaltyTransaction.objects.filter(reference=reference, kind=LoyaltyTransaction.KIND_REDEEM):
        if LoyaltyTransaction.objects.filter(
            reference=reference, kind=LoyaltyTransaction.KIND_REFUND, account_id=spent.account_id
        ).exists():
            continue
        LoyaltyAccount.objects.filter(id=spent.account_id).update(
            points=F("points") - spent.points, updated_at=timezone.now()
        )
        LoyaltyTransaction.objects.create(
            account_id=spent.account_id, kind=LoyaltyTransaction.KIND_REFUND, points=-spent.points, reference=reference
        )


@transaction.atomic
def redeem_for_order(order) -> None:
    """Award loyalty points for a paid order, once."""

    reference = _order_reference(order)
    if not order.user_id:
        return
    if LoyaltyTransaction.objects.filter(reference=reference, kind=LoyaltyTransaction.KIND_EARN).exists():
        return
    account, _ = LoyaltyAccount.objects.select_for_update().get_or_create(user_id=order.user_id)
    earned = points_earned(order.total, account.tier)
    if earned <= 0:
        return
    account.points = account.points + earned
    account.lifetime_points = account.lifetime_points + earned
    account.save(update_fields=["points", "lifetime_points", "updated_at"])
    LoyaltyTransaction.objects.create(
        account=account, kind=LoyaltyTransaction.KIND_EARN, points=earned, reference=reference
    )
    logger.info(
        "promotions.points_earned",
        extra={"event": "promotions.points_earned", "order_number": order.number, "points": earned},
    )


# EOF
