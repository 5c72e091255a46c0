from django.urls import path

from .views import (
    AdjustView,
    LowStockAlertsView,
    MovementListView,
    ReconcileView,
    ReservationListView,
    RestockView,
    StockItemListView,
    StockValuationView,
)

urlpatterns = [
    path("stock-items/", StockItemListView.as_view(), name="stock-item-list"),
    path("stock-items/<int:product_id>/restock/", RestockView.as_view(), name="stock-item-restock"),
    path("stock-items/<int:product_id>/adjust/", AdjustView.as_view(), name="stock-item-adjust"),
    path("stock-items/<int:product_id>/reconcile/", ReconcileView.as_view(), name="stock-item-reconcile"),
    path("movements/", MovementListView.as_view(), name="movement-list"),
    path("reservations/", ReservationListView.as_view(), name="reservation-list"),
    path("alerts/", LowStockAlertsView.as_view(), name="low-stock-alerts"),
    path("valuation/", StockValuationView.as_view(), name="stock-valuation"),
]

# EOF
