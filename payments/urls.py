"""URL routes for the payments app (v1)."""

from django.urls import path

from .views import ChargeOrderView, GatewayNotificationView, PaymentSessionView

app_name = "payments"

urlpatterns = [
    path("session/", PaymentSessionView.as_view(), name="payment-session"),
    path("orders/<int:order_id>/charge/", ChargeOrderView.as_view(), name="charge-order"),
    path("notifications/", GatewayNotificationView.as_view(), name="gateway-notification"),
]
