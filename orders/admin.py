from django.contrib import admin

from .models import IdempotencyKey, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "product_title", "sku", "quantity", "unit_price", "unit_weight_kg")
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "number", "status", "payment_status", "payment_method", "email", "total", "created_at")
    list_filter = ("status", "payment_status", "payment_method", "created_at")
    search_fields = ("number", "email", "customer_name", "tracking_number")
    date_hierarchy = "created_at"
    inlines = [OrderItemInline]
    # Money and state only move through orders.services
    readonly_fields = (
        "number",
        "status",
        "payment_status",
        "subtotal",
        "shipping_cost",
        "discount",
        "total",
        "coupon_code",
        "referral_code",
        "gift_card_code",
        "gift_card_amount",
        "loyalty_points_redeemed",
        "paid_at",
        "shipped_at",
        "delivered_at",
    )

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(admin.ModelAdmin):
    list_display = ("id", "key", "scope", "path", "method", "response_code", "created_at")
    list_filter = ("method", "response_code", "created_at")
    search_fields = ("key", "scope", "path")
    date_hierarchy = "created_at"
