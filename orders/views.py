"""Orders API endpoints.

Checkout is open to guests; listing and detail are scoped to the owner, and
staff can see and move any order. Mutations are idempotent when an
``Idempotency-Key`` header is sent.
"""

from common.exceptions import StorefrontError, ValidationFailed
from common.responses import error_response
from django.http import Http404
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from pricing.serializers import quote_payload
from rest_framework import generics
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import OrderFilter
from .models import Order
from .serializers import (
    CheckoutSerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    RefundSerializer,
)
from .services import (
    cancel_order,
    compute_request_hash,
    place_order,
    refund_payment,
    transition_status,
    with_idempotency,
)

IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key",
    location=OpenApiParameter.HEADER,
    required=False,
    description="Makes the request idempotent within scope+path+method",
    type=str,
)


def run_idempotent(request, handler) -> Response:
    """Run handler under the request's Idempotency-Key, if any.

    Domain errors propagate out of the handler so the key is dropped and the
    client can retry; they are rendered here.
    """
    try:
        idem_key = request.headers.get("Idempotency-Key")
        if idem_key:
            body, code = with_idempotency(
                key=idem_key,
                user=request.user,
                path=str(request.path),
                method=str(request.method),
                request_hash=compute_request_hash(getattr(request, "data", None)),
                handler=handler,
            )
        else:
            body, code = handler()
    except StorefrontError as exc:
        return error_response(exc)
    return Response(body, status=code)


class CheckoutView(APIView):
    """Place an order from a list of products.

    Prices come from the catalog at the moment of checkout; codes that fail
    validation are reported under `rejections` and do not block the order.
    """

    permission_classes = [AllowAny]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Checkout",
        request=CheckoutSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        responses={201: OrderSerializer},
        examples=[
            OpenApiExample(
                "Checkout",
                value={
                    "customer_name": "Ana Souza",
                    "email": "ana@example.com",
                    "postal_code": "01310-100",
                    "payment_method": "pix",
                    "items": [{"product_id": 12, "quantity": 1}],
                    "coupon_code": "WELCOME10",
                },
                request_only=True,
            ),
            OpenApiExample(
                "Out of stock", value={"detail": "Not enough stock for one or more items."}, response_only=True
            ),
        ],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        def _handler():
            placed = place_order(
                user=request.user,
                customer_name=data["customer_name"],
                email=data["email"],
                phone=data["phone"],
                postal_code=data["postal_code"],
                items=data["items"],
                payment_method=data["payment_method"],
                coupon_code=data["coupon_code"],
                referral_code=data["referral_code"],
                gift_card_code=data["gift_card_code"],
                loyalty_points=data["loyalty_points"],
            )
            body = {
                "order": OrderSerializer(placed.order, context={"request": request}).data,
                "pricing": quote_payload(placed.quote),
            }
            return body, 201

        return run_idempotent(request, _handler)


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"


class OrderListView(generics.ListAPIView):
    """List the authenticated user's orders; staff see every order.

    Filters: `status`, `payment_status`, `number`, `start`, `end`.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = DefaultPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter
    throttle_scope = "orders"

    def get_queryset(self):
        qs = Order.objects.order_by("-id").prefetch_related("items")
        if not self.request.user.is_staff:
            qs = qs.filter(user_id=self.request.user.id)
        return qs

    @extend_schema(tags=["Orders"], summary="List orders")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "orders"
    serializer_class = OrderSerializer

    def get_queryset(self):
        qs = Order.objects.prefetch_related("items")
        if not self.request.user.is_staff:
            qs = qs.filter(user_id=self.request.user.id)
        return qs

    def get_object(self):
        try:
            return self.get_queryset().get(id=int(self.kwargs["order_id"]))
        except (Order.DoesNotExist, ValueError):
            raise Http404("Not found.")

    @extend_schema(tags=["Orders"], summary="Get order detail")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderCancelView(APIView):
    """Cancel a pending order for its owner, giving back stock and credits."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Cancel order",
        description="Cancels a pending order. Idempotent when Idempotency-Key header is set.",
        parameters=[IDEMPOTENCY_HEADER],
        responses={200: OrderSerializer},
        examples=[
            OpenApiExample("Cancelled", value={"id": 1, "status": "cancelled"}, response_only=True),
            OpenApiExample(
                "Not cancellable", value={"detail": "Only pending orders can be cancelled."}, response_only=True
            ),
        ],
    )
    def post(self, request, order_id: int):
        try:
            order = Order.objects.get(pk=order_id, user=request.user)
        except Order.DoesNotExist:
            raise Http404

        def _handler():
            if order.status not in (Order.STATUS_PENDING, Order.STATUS_CANCELLED):
                raise ValidationFailed("Only pending orders can be cancelled.")
            updated = cancel_order(order_id=order.id)
            return OrderSerializer(updated, context={"request": request}).data, 200

        return run_idempotent(request, _handler)


class OrderStatusUpdateView(APIView):
    """Staff-only fulfillment transition (confirm, process, ship, deliver, cancel)."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Update order status",
        request=OrderStatusUpdateSerializer,
        responses={200: OrderSerializer},
        examples=[
            OpenApiExample("Ship", value={"status": "shipped", "tracking_number": "BR123456789"}, request_only=True),
        ],
    )
    def post(self, request, order_id: int):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            order = transition_status(
                order_id=order_id,
                new_status=serializer.validated_data["status"],
                tracking_number=serializer.validated_data.get("tracking_number"),
            )
        except StorefrontError as exc:
            if not Order.objects.filter(id=order_id).exists():
                raise Http404
            return error_response(exc)
        return Response(OrderSerializer(order, context={"request": request}).data)


class OrderRefundView(APIView):
    """Staff-only refund of a paid order, optionally returning units to stock."""

    permission_classes = [IsAdminUser]
    throttle_scope = "orders_write"

    @extend_schema(
        tags=["Orders"],
        summary="Refund order",
        request=RefundSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        responses={200: OrderSerializer},
    )
    def post(self, request, order_id: int):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not Order.objects.filter(id=order_id).exists():
            raise Http404

        def _handler():
            order = refund_payment(order_id=order_id, restock=serializer.validated_data["restock"])
            return OrderSerializer(order, context={"request": request}).data, 200

        return run_idempotent(request, _handler)


# EOF
