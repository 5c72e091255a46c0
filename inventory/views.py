"""Inventory API: read-only ledger lists and staff ledger operations."""

from drf_spectacular.utils import OpenApiExample, extend_schema, inline_serializer
from rest_framework import generics, permissions, status
from rest_framework import serializers as rf_serializers
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import StockItemFilter, StockMovementFilter, StockReservationFilter
from .models import StockItem, StockMovement, StockReservation
from .selectors import low_stock_alerts, reconcile_stock_item, stock_valuation
from .serializers import (
    AdjustSerializer,
    RestockSerializer,
    StockItemSerializer,
    StockMovementSerializer,
    StockReservationSerializer,
)
from .services import MovementError, adjust, restock


class InventoryStaffMixin:
    permission_classes = [permissions.IsAdminUser]
    throttle_scope = "inventory"


class StockItemListView(InventoryStaffMixin, generics.ListAPIView):
    serializer_class = StockItemSerializer
    filterset_class = StockItemFilter
    queryset = StockItem.objects.select_related("product").order_by("-updated_at", "id")

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock items",
        description="List current stock per product. Filters: product_id, sku, updated_after (ISO).",
        examples=[
            OpenApiExample(
                "Stock Items",
                value={
                    "results": [
                        {
                            "id": 1,
                            "product": 10,
                            "sku": "DA-001",
                            "quantity": 45,
                            "reserved": 5,
                            "available": 40,
                            "reorder_point": 20,
                            "cost_price": "65.00",
                            "sell_price": "129.90",
                            "last_restocked": "2025-01-01T12:00:00Z",
                            "updated_at": "2025-01-01T12:00:00Z",
                        }
                    ]
                },
            )
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class MovementListView(InventoryStaffMixin, generics.ListAPIView):
    serializer_class = StockMovementSerializer
    filterset_class = StockMovementFilter
    queryset = StockMovement.objects.select_related("stock_item").order_by("-created_at", "-id")

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock movements",
        description=(
            "List movements (in/out/adjustment/return). Filters: product_id, movement_type, reference, "
            "created_after (ISO)."
        ),
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class ReservationListView(InventoryStaffMixin, generics.ListAPIView):
    serializer_class = StockReservationSerializer
    filterset_class = StockReservationFilter
    queryset = StockReservation.objects.order_by("-created_at", "id")

    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="List stock reservations",
        description=(
            "List reservations. Filters: product_id, state (active/released/committed), reference, "
            "expires_before (ISO)."
        ),
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class RestockView(InventoryStaffMixin, APIView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Restock product",
        request=RestockSerializer,
        responses={200: StockItemSerializer},
    )
    def post(self, request, product_id: int):
        serializer = RestockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            item = restock(product_id=product_id, **serializer.validated_data)
        except MovementError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(StockItemSerializer(item).data)


class AdjustView(InventoryStaffMixin, APIView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Adjust stock count",
        description="Sets the physical count after a stock take. Counts below reserved units are rejected.",
        request=AdjustSerializer,
        responses={200: StockItemSerializer},
    )
    def post(self, request, product_id: int):
        serializer = AdjustSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            item = adjust(product_id=product_id, **serializer.validated_data)
        except MovementError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(StockItemSerializer(item).data)


class ReconcileView(InventoryStaffMixin, APIView):
    @extend_schema(
        tags=["Inventory Endpoints"],
        summary="Reconcile stock item against its movement log",
        responses={
            200: inline_serializer(
                name="ReconcileResponse",
                fields={
                    "product_id": rf_serializers.IntegerField(),
                    "expected": rf_serializers.IntegerField(),
                    "actual": rf_serializers.IntegerField(),
                    "consistent": rf_serializers.BooleanField(),
                },
            )
        },
    )
    def get(self, request, product_id: int):
        try:
            return Response(reconcile_stock_item(product_id))
        except StockItem.DoesNotExist:
            return Response({"detail": "Not found."}, status=status.HTTP_404_NOT_FOUND)


class LowStockAlertsView(InventoryStaffMixin, APIView):
    @extend_schema(tags=["Inventory Endpoints"], summary="Low stock alerts")
    def get(self, request):
        return Response({"results": low_stock_alerts()})


class StockValuationView(InventoryStaffMixin, APIView):
    @extend_schema(tags=["Inventory Endpoints"], summary="Stock valuation at cost and retail")
    def get(self, request):
        return Response(stock_valuation())


# EOF
