from django.contrib import admin

from .models import GatewayNotification, PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "code", "method", "amount", "status", "gateway_status", "created_at")
    list_filter = ("status", "method", "gateway_status", "created_at")
    search_fields = ("code", "order__number")
    date_hierarchy = "created_at"
    readonly_fields = [f.name for f in PaymentTransaction._meta.fields]


@admin.register(GatewayNotification)
class GatewayNotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "code", "notification_type", "gateway_status", "processed_at", "created_at")
    list_filter = ("notification_type", "gateway_status")
    search_fields = ("code", "transaction__code")
    readonly_fields = [f.name for f in GatewayNotification._meta.fields]
