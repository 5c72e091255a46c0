"""URL routes for the orders app (v1)."""

from django.urls import path

from .views import (
    CheckoutView,
    OrderCancelView,
    OrderDetailView,
    OrderListView,
    OrderRefundView,
    OrderStatusUpdateView,
)

app_name = "orders"

urlpatterns = [
    path("", OrderListView.as_view(), name="order-list"),
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("<int:order_id>/", OrderDetailView.as_view(), name="order-detail"),
    path("<int:order_id>/cancel/", OrderCancelView.as_view(), name="order-cancel"),
    path("<int:order_id>/status/", OrderStatusUpdateView.as_view(), name="order-status"),
    path("<int:order_id>/refund/", OrderRefundView.as_view(), name="order-refund"),
]
