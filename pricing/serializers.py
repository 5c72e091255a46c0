"""Serializers for the pricing endpoints.

Inputs are validated for shape only. Outputs render the pure pricing results
(``ShippingQuote``, ``DiscountStack``) with money as strings.
"""

from rest_framework import serializers


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=100)


class ShippingQuoteRequestSerializer(serializers.Serializer):
    postal_code = serializers.CharField(max_length=9)
    weight_kg = serializers.DecimalField(max_digits=8, decimal_places=3, min_value=0)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class PricingInputSerializer(serializers.Serializer):
    """Fields shared by checkout and the price preview."""

    postal_code = serializers.CharField(max_length=9)
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    coupon_code = serializers.CharField(required=False, allow_blank=True, default="")
    referral_code = serializers.CharField(required=False, allow_blank=True, default="")
    gift_card_code = serializers.CharField(required=False, allow_blank=True, default="")
    loyalty_points = serializers.IntegerField(required=False, min_value=0, default=0)


def shipping_payload(shipping) -> dict:
    return {
        "cost": str(shipping.cost),
        "original_cost": str(shipping.original_cost),
        "is_free_shipping": shipping.is_free_shipping,
        "free_shipping_threshold": str(shipping.free_shipping_threshold),
        "missing_for_free_shipping": str(shipping.missing_for_free_shipping),
        "estimated_days": shipping.estimated_days,
        "estimated_date": shipping.estimated_date.isoformat(),
        "weight_kg": str(shipping.weight_kg),
    }


def quote_payload(quote) -> dict:
    """Plain-dict rendering of a checkout quote for API responses."""

    stack = quote.discounts
    return {
        "subtotal": str(stack.subtotal),
        "shipping": shipping_payload(quote.shipping),
        "discounts": [
            {
                "source": entry.source,
                "code": entry.code,
                "amount": str(entry.amount),
                "remaining_balance": None if entry.remaining_balance is None else str(entry.remaining_balance),
                "points_used": entry.points_used,
            }
            for entry in stack.applied
        ],
        "rejections": [
            {"source": r.source, "code": r.code, "reason": r.reason, "message": r.message} for r in stack.rejections
        ],
        "discount": str(stack.discount),
        "total": str(stack.final_total),
    }
