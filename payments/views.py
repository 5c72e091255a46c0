"""Payments API: card session, order charge and the processor's notification webhook."""

import logging

from common.exceptions import GatewayError, NotificationReplay, StorefrontError
from common.responses import error_response
from django.http import Http404
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema
from orders.models import Order
from orders.views import IDEMPOTENCY_HEADER, run_idempotent
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .markup import Address
from .serializers import ChargeSerializer, PaymentTransactionSerializer
from .services import charge_order, create_checkout_session, handle_notification

logger = logging.getLogger("storefront.payments")


class PaymentSessionView(APIView):
    permission_classes = [AllowAny]
    throttle_scope = "payments"

    @extend_schema(
        tags=["Payments"],
        summary="Card session",
        description="Session id used by the storefront to tokenize card data in the browser.",
        examples=[OpenApiExample("Session", value={"session_id": "620f99e348c24f07877c927b353e49d3"})],
    )
    def post(self, request):
        try:
            session_id = create_checkout_session()
        except GatewayError as exc:
            return error_response(exc)
        return Response({"session_id": session_id})


class ChargeOrderView(APIView):
    """Charge a pending order with the payment method chosen at checkout.

    Idempotent when `Idempotency-Key` is provided. A processor failure gives
    the order's stock back and answers 502.
    """

    permission_classes = [AllowAny]
    throttle_scope = "payments"

    def _get_order(self, request, order_id: int, email: str) -> Order:
        try:
            order = Order.objects.get(id=order_id)
        except Order.DoesNotExist:
            raise Http404
        user = request.user
        if user.is_authenticated and (user.is_staff or order.user_id == user.id):
            return order
        if email and order.email.lower() == email.lower():
            return order
        raise Http404

    @extend_schema(
        tags=["Payments"],
        summary="Charge order",
        request=ChargeSerializer,
        parameters=[IDEMPOTENCY_HEADER],
        responses={200: PaymentTransactionSerializer},
        examples=[
            OpenApiExample(
                "Card",
                value={
                    "email": "ana@example.com",
                    "sender_hash": "b0a2f9...",
                    "card_token": "4a1b2c...",
                    "cpf": "123.456.789-09",
                    "holder_name": "ANA SOUZA",
                    "birth_date": "01/01/1990",
                },
                request_only=True,
            ),
            OpenApiExample(
                "Gateway down",
                value={"detail": "We could not process your payment. Please try again."},
                response_only=True,
            ),
        ],
    )
    def post(self, request, order_id: int):
        serializer = ChargeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = self._get_order(request, order_id, data.get("email", ""))
        address = Address(**data["address"]) if data.get("address") else None

        def _handler():
            txn = charge_order(
                order_id=order.id,
                sender_hash=data["sender_hash"],
                card_token=data["card_token"],
                cpf=data["cpf"],
                holder_name=data["holder_name"],
                birth_date=data["birth_date"],
                address=address,
            )
            order.refresh_from_db()
            body = {
                "transaction": PaymentTransactionSerializer(txn).data,
                "order": {
                    "id": order.id,
                    "number": order.number,
                    "status": order.status,
                    "payment_status": order.payment_status,
                },
            }
            return body, 200

        return run_idempotent(request, _handler)


class GatewayNotificationView(APIView):
    """Processor notification webhook.

    Always answers 200: the processor retries anything else forever. Failures
    are logged for reconciliation instead.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = []

    @extend_schema(
        tags=["Payments"],
        summary="Payment notification",
        parameters=[
            OpenApiParameter(name="notificationCode", required=True, type=str),
            OpenApiParameter(name="notificationType", required=False, type=str),
        ],
        examples=[OpenApiExample("Ack", value={"status": "ok"}, response_only=True)],
    )
    def post(self, request):
        data = request.data or {}
        params = request.query_params
        code = data.get("notificationCode") or params.get("notificationCode", "")
        notification_type = data.get("notificationType") or params.get("notificationType", "transaction")
        event = {"notification_code": code, "notification_type": notification_type}
        try:
            handle_notification(code=code, notification_type=notification_type)
        except NotificationReplay:
            logger.info("payments.notification_replay", extra={"event": "payments.notification_replay", **event})
        except StorefrontError as exc:
            logger.error(
                "payments.notification_failed",
                extra={"event": "payments.notification_failed", "error": str(exc), **event},
            )
        except Exception:
            logger.exception(
                "payments.notification_crashed",
                extra={"event": "payments.notification_crashed", **event},
            )
        return Response({"status": "ok"})


# EOF
