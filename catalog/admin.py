from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "title", "price", "weight_kg", "status", "updated_at")
    list_filter = ("status",)
    search_fields = ("sku", "title")
