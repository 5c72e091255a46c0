"""Shipping rate calculation from destination CEP, parcel weight and subtotal."""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from common.exceptions import ValidationFailed
from django.conf import settings
from django.utils import timezone

from .discounts import ZERO, money

DEFAULT_ITEM_WEIGHT_KG = Decimal("0.5")

# (first two CEP digits low, high, transit days)
REGION_TRANSIT_DAYS = (
    (1, 19, 3),  # SP
    (20, 28, 4),  # RJ / ES
    (40, 65, 8),  # Northeast
    (66, 76, 10),  # North / Centre-West
    (80, 99, 5),  # South
)
DEFAULT_TRANSIT_DAYS = 7


@dataclass(frozen=True)
class ShippingRates:
    base_rate: Decimal = Decimal("15.00")
    per_kg_rate: Decimal = Decimal("5.00")
    included_weight_kg: Decimal = Decimal("1")
    free_shipping_threshold: Decimal = Decimal("150.00")

    @classmethod
    def from_settings(cls) -> "ShippingRates":
        return cls(
            base_rate=Decimal(str(getattr(settings, "SHIPPING_BASE_RATE", cls.base_rate))),
            per_kg_rate=Decimal(str(getattr(settings, "SHIPPING_PER_KG_RATE", cls.per_kg_rate))),
            included_weight_kg=Decimal(str(getattr(settings, "SHIPPING_INCLUDED_WEIGHT_KG", cls.included_weight_kg))),
            free_shipping_threshold=Decimal(
                str(getattr(settings, "SHIPPING_FREE_THRESHOLD", cls.free_shipping_threshold))
            ),
        )


@dataclass(frozen=True)
class ShippingQuote:
    cost: Decimal
    original_cost: Decimal
    is_free_shipping: bool
    free_shipping_threshold: Decimal
    missing_for_free_shipping: Decimal
    estimated_days: int
    estimated_date: date
    weight_kg: Decimal


def normalize_postal_code(postal_code: str) -> str:
    digits = re.sub(r"\D", "", postal_code or "")
    if len(digits) != 8:
        raise ValidationFailed("Enter a valid 8-digit CEP.")
    return digits


def estimate_transit_days(postal_code: str) -> int:
    prefix = int(normalize_postal_code(postal_code)[:2])
    for low, high, days in REGION_TRANSIT_DAYS:
        if low <= prefix <= high:
            return days
    return DEFAULT_TRANSIT_DAYS


def cart_weight(lines: Iterable[tuple[Optional[Decimal], int]]) -> Decimal:
    """Total weight of ``(unit_weight_kg, quantity)`` pairs; missing or zero weights count 0.5 kg."""

    total = Decimal("0")
    for weight, quantity in lines:
        unit = Decimal(weight) if weight else DEFAULT_ITEM_WEIGHT_KG
        total += unit * int(quantity)
    return total


def calculate_shipping(
    postal_code: str,
    weight_kg,
    subtotal,
    *,
    rates: Optional[ShippingRates] = None,
    now: Optional[datetime] = None,
) -> ShippingQuote:
    rates = rates or ShippingRates()
    weight = Decimal(weight_kg)
    if weight < 0:
        raise ValidationFailed("Weight cannot be negative.")
    subtotal = money(subtotal)
    days = estimate_transit_days(postal_code)

    original = rates.base_rate
    if weight > rates.included_weight_kg:
        original += (weight - rates.included_weight_kg) * rates.per_kg_rate
    original = money(original)

    is_free = subtotal >= rates.free_shipping_threshold
    missing = ZERO if is_free else money(rates.free_shipping_threshold - subtotal)
    today = (now or timezone.now()).date()
    return ShippingQuote(
        cost=ZERO if is_free else original,
        original_cost=original,
        is_free_shipping=is_free,
        free_shipping_threshold=money(rates.free_shipping_threshold),
        missing_for_free_shipping=missing,
        estimated_days=days,
        estimated_date=today + timedelta(days=days),
        weight_kg=weight,
    )
