"""URL routes for the pricing app (v1)."""

from django.urls import path

from .views import PricePreviewView, ShippingQuoteView

app_name = "pricing"

urlpatterns = [
    path("shipping/", ShippingQuoteView.as_view(), name="shipping-quote"),
    path("preview/", PricePreviewView.as_view(), name="price-preview"),
]
