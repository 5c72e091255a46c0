"""DRF serializers for Orders.

Order totals are read straight from the order: they are what the customer was
charged at checkout. Checkout input is validated here for shape only; business
rules live in ``orders.services``.
"""

from common.choices import OrderStatus, PaymentMethod
from pricing.serializers import PricingInputSerializer
from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """API representation of an order line item with computed line_total."""

    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "product_title",
            "sku",
            "quantity",
            "unit_price",
            "unit_weight_kg",
            "line_total",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "number",
            "status",
            "payment_status",
            "payment_method",
            "customer_name",
            "email",
            "phone",
            "postal_code",
            "items",
            "subtotal",
            "shipping_cost",
            "discount",
            "total",
            "coupon_code",
            "referral_code",
            "gift_card_code",
            "gift_card_amount",
            "loyalty_points_redeemed",
            "tracking_number",
            "created_at",
            "paid_at",
            "shipped_at",
            "delivered_at",
        ]
        read_only_fields = fields


class CheckoutSerializer(PricingInputSerializer):
    customer_name = serializers.CharField(max_length=120)
    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, default="", max_length=32)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices)


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=64)


class RefundSerializer(serializers.Serializer):
    restock = serializers.BooleanField(required=False, default=False)
