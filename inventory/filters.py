"""FilterSets for the inventory list endpoints."""

import django_filters

from .models import StockItem, StockMovement, StockReservation


class StockItemFilter(django_filters.FilterSet):
    product_id = django_filters.NumberFilter(field_name="product_id")
    sku = django_filters.CharFilter(field_name="product__sku", lookup_expr="iexact")
    updated_after = django_filters.IsoDateTimeFilter(field_name="updated_at", lookup_expr="gte")

    class Meta:
        model = StockItem
        fields = ["product_id", "sku", "updated_after"]


class StockMovementFilter(django_filters.FilterSet):
    product_id = django_filters.NumberFilter(field_name="stock_item__product_id")
    movement_type = django_filters.ChoiceFilter(choices=StockMovement.TYPE_CHOICES)
    reference = django_filters.CharFilter(field_name="reference")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")

    class Meta:
        model = StockMovement
        fields = ["product_id", "movement_type", "reference", "created_after"]


class StockReservationFilter(django_filters.FilterSet):
    product_id = django_filters.NumberFilter(field_name="product_id")
    state = django_filters.ChoiceFilter(choices=StockReservation.STATE_CHOICES)
    reference = django_filters.CharFilter(field_name="reference")
    expires_before = django_filters.IsoDateTimeFilter(field_name="expires_at", lookup_expr="lte")

    class Meta:
        model = StockReservation
        fields = ["product_id", "state", "reference", "expires_before"]
