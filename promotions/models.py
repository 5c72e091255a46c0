"""Promotion stores: coupons, referral codes, gift cards and loyalty accounts.

Codes are stored upper-case. Checkout reads these through
``promotions.selectors`` snapshots; counters and balances change only through
``promotions.services``.
"""

from decimal import Decimal

from common.choices import DiscountKind
from django.conf import settings
from django.db import models

from .tiers import tier_for_points


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Coupon(TimeStampedModel):
    KIND_CHOICES = DiscountKind.choices

    code = models.CharField(max_length=40, unique=True)
    description = models.CharField(max_length=200, blank=True)
    kind = models.CharField(max_length=16, choices=KIND_CHOICES, default=DiscountKind.PERCENTAGE)
    value = models.DecimalField(max_digits=10, decimal_places=2)
    min_purchase = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(name="coupon_value_positive", condition=models.Q(value__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)


class ReferralCode(TimeStampedModel):
    KIND_CHOICES = DiscountKind.choices

    code = models.CharField(max_length=32, unique=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="referral_codes",
    )
    kind = models.CharField(max_length=16, choices=KIND_CHOICES, default=DiscountKind.PERCENTAGE)
    value = models.DecimalField(max_digits=10, decimal_places=2)
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(name="referral_value_positive", condition=models.Q(value__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)


class GiftCard(TimeStampedModel):
    code = models.CharField(max_length=32, unique=True)
    initial_value = models.DecimalField(max_digits=10, decimal_places=2)
    balance = models.DecimalField(max_digits=10, decimal_places=2)
    expires_at = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)
    purchased_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="gift_cards_purchased",
    )
    recipient_email = models.EmailField(blank=True)
    recipient_name = models.CharField(max_length=120, blank=True)
    message = models.TextField(blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(name="giftcard_balance_non_negative", condition=models.Q(balance__gte=0)),
            models.CheckConstraint(
                name="giftcard_balance_le_initial",
                condition=models.Q(balance__lte=models.F("initial_value")),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.code


class GiftCardTransaction(models.Model):
    """Append-only balance change for a gift card (signed amount)."""

    KIND_REDEMPTION = "redemption"
    KIND_REFUND = "refund"
    KIND_CHOICES = [(KIND_REDEMPTION, "Redemption"), (KIND_REFUND, "Refund")]

    gift_card = models.ForeignKey(GiftCard, on_delete=models.PROTECT, related_name="transactions")
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    reference = models.CharField(max_length=120, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["reference"], name="giftcard_txn_reference_idx")]


class CodeRedemption(models.Model):
    """One use of a coupon or referral code claimed by an order.

    ``released_at`` is set when the order gives the use back.
    """

    SOURCE_COUPON = "coupon"
    SOURCE_REFERRAL = "referral"
    SOURCE_CHOICES = [(SOURCE_COUPON, "Coupon"), (SOURCE_REFERRAL, "Referral")]

    source = models.CharField(max_length=16, choices=SOURCE_CHOICES)
    code = models.CharField(max_length=40)
    reference = models.CharField(max_length=120)
    created_at = models.DateTimeField(auto_now_add=True)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(fields=["source", "reference"], name="uniq_code_redemption_per_order"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.source}:{self.code} {self.reference}"


class LoyaltyAccount(TimeStampedModel):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="loyalty")
    points = models.PositiveIntegerField(default=0)
    lifetime_points = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-points"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Loyalty<{self.user_id}> {self.points}pts"

    @property
    def tier(self):
        return tier_for_points(self.lifetime_points)


class LoyaltyTransaction(models.Model):
    """Append-only points change for a loyalty account (signed points)."""

    KIND_EARN = "earn"
    KIND_REDEEM = "redeem"
    KIND_REFUND = "refund"
    KIND_CHOICES = [(KIND_EARN, "Earn"), (KIND_REDEEM, "Redeem"), (KIND_REFUND, "Refund")]

    account = models.ForeignKey(LoyaltyAccount, on_delete=models.CASCADE, related_name="transactions")
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    points = models.IntegerField()
    reference = models.CharField(max_length=120, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["reference"], name="loyalty_txn_reference_idx")]


# EOF
