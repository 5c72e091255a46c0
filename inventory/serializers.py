"""Serializers for inventory domain.

Read-only serializers for stock items, movements, and reservations, plus input
serializers for the staff-only ledger operations.
"""

from rest_framework import serializers

from .models import StockItem, StockMovement, StockReservation


class StockItemSerializer(serializers.ModelSerializer):
    """Read-only representation of stock for a product.

    Exposes computed ``available`` and the product SKU for convenience.
    """

    sku = serializers.CharField(source="product.sku", read_only=True)
    available = serializers.IntegerField(read_only=True)

    class Meta:
        model = StockItem
        fields = [
            "id",
            "product",
            "sku",
            "quantity",
            "reserved",
            "available",
            "reorder_point",
            "cost_price",
            "sell_price",
            "last_restocked",
            "updated_at",
        ]
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    """Read-only representation of stock movements."""

    product = serializers.IntegerField(source="stock_item.product_id", read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "movement_type",
            "quantity",
            "reason",
            "reference",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class StockReservationSerializer(serializers.ModelSerializer):
    """Read-only representation of stock reservations."""

    class Meta:
        model = StockReservation
        fields = [
            "id",
            "product",
            "quantity",
            "reference",
            "state",
            "expires_at",
            "created_at",
        ]
        read_only_fields = fields


class RestockSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AdjustSerializer(serializers.Serializer):
    new_quantity = serializers.IntegerField(min_value=0)
    reason = serializers.CharField(max_length=200)


# EOF
