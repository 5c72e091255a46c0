"""Pricing API: shipping quotes and a priced preview of a prospective order.

Nothing here mutates state; the preview runs the same pricing as checkout
without reserving stock or holding credits.
"""

from common.exceptions import ValidationFailed
from common.responses import error_response
from drf_spectacular.utils import OpenApiExample, extend_schema
from orders.services import price_checkout
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import PricingInputSerializer, ShippingQuoteRequestSerializer, quote_payload, shipping_payload
from .shipping import ShippingRates, calculate_shipping


class ShippingQuoteView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "pricing"

    @extend_schema(
        tags=["Pricing"],
        summary="Shipping quote",
        description="Rate for a parcel of `weight_kg` to `postal_code` (CEP), free above the configured subtotal.",
        request=ShippingQuoteRequestSerializer,
        examples=[
            OpenApiExample(
                "Quote",
                value={
                    "cost": "17.50",
                    "original_cost": "17.50",
                    "is_free_shipping": False,
                    "free_shipping_threshold": "150.00",
                    "missing_for_free_shipping": "50.00",
                    "estimated_days": 3,
                    "estimated_date": "2025-06-04",
                    "weight_kg": "1.500",
                },
                response_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = ShippingQuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            quote = calculate_shipping(
                data["postal_code"], data["weight_kg"], data["subtotal"], rates=ShippingRates.from_settings()
            )
        except ValidationFailed as exc:
            return error_response(exc)
        return Response(shipping_payload(quote))


class PricePreviewView(APIView):
    """Price a cart with shipping and every discount source, reporting rejected codes."""

    permission_classes = [AllowAny]
    throttle_scope = "pricing"

    @extend_schema(
        tags=["Pricing"],
        summary="Price preview",
        request=PricingInputSerializer,
        examples=[
            OpenApiExample(
                "Preview",
                value={
                    "postal_code": "01310-100",
                    "items": [{"product_id": 12, "quantity": 2}],
                    "coupon_code": "WELCOME10",
                    "gift_card_code": "MPZEN-ABCD1234-07",
                },
                request_only=True,
            )
        ],
    )
    def post(self, request):
        serializer = PricingInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            quote = price_checkout(
                items=data["items"],
                postal_code=data["postal_code"],
                user=request.user,
                coupon_code=data["coupon_code"],
                referral_code=data["referral_code"],
                gift_card_code=data["gift_card_code"],
                loyalty_points=data["loyalty_points"],
            )
        except ValidationFailed as exc:
            return error_response(exc)
        return Response(quote_payload(quote))


# EOF
