"""Admin registrations for inventory app.

Movements are append-only, so their admin is read-only.
"""

from django.contrib import admin

from .models import StockItem, StockMovement, StockReservation


@admin.register(StockItem)
class StockItemAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "quantity", "reserved", "reorder_point", "last_restocked", "updated_at")
    search_fields = ("product__sku", "product__title")
    readonly_fields = ("quantity", "reserved")


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("id", "stock_item", "movement_type", "quantity", "reason", "reference", "created_at")
    list_filter = ("movement_type",)
    search_fields = ("stock_item__product__sku", "reference")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockReservation)
class StockReservationAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "quantity", "state", "reference", "expires_at", "created_at")
    list_filter = ("state",)
    search_fields = ("product__sku", "reference")


# EOF
