from django.contrib import admin

from .models import Coupon, GiftCard, GiftCardTransaction, LoyaltyAccount, LoyaltyTransaction, ReferralCode


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "kind", "value", "min_purchase", "used_count", "max_uses", "valid_until", "active")
    list_filter = ("kind", "active")
    search_fields = ("code", "description")
    readonly_fields = ("used_count",)


@admin.register(ReferralCode)
class ReferralCodeAdmin(admin.ModelAdmin):
    list_display = ("code", "owner", "kind", "value", "usage_count", "usage_limit", "expires_at", "active")
    list_filter = ("kind", "active")
    search_fields = ("code", "owner__email")
    readonly_fields = ("usage_count",)


class GiftCardTransactionInline(admin.TabularInline):
    model = GiftCardTransaction
    extra = 0
    can_delete = False
    readonly_fields = ("kind", "amount", "reference", "created_at")


@admin.register(GiftCard)
class GiftCardAdmin(admin.ModelAdmin):
    list_display = ("code", "initial_value", "balance", "expires_at", "active", "recipient_email")
    list_filter = ("active",)
    search_fields = ("code", "recipient_email")
    readonly_fields = ("balance",)
    inlines = [GiftCardTransactionInline]


@admin.register(LoyaltyAccount)
class LoyaltyAccountAdmin(admin.ModelAdmin):
    list_display = ("user", "points", "lifetime_points", "updated_at")
    search_fields = ("user__email", "user__username")


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(admin.ModelAdmin):
    list_display = ("account", "kind", "points", "reference", "created_at")
    list_filter = ("kind",)
    search_fields = ("reference",)


# EOF
