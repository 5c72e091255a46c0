"""Charging orders and applying processor notifications.

The processor is never called while stock rows are locked: the order already
holds its reservations from checkout, the call runs outside any transaction,
and only its outcome is applied through the order state machine
(``mark_paid`` commits, ``mark_payment_failed`` releases).
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from common.choices import GatewayStatus, PaymentMethod, PaymentStatus
from common.exceptions import ConsistencyViolation, GatewayError, NotificationReplay, ValidationFailed
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from orders.models import Order
from orders.services import hold_for_pending_payment, mark_paid, mark_payment_failed, refund_payment

from .client import GatewayClient
from .markup import (
    Address,
    Bank,
    ChargeRequest,
    CreditCard,
    Document,
    Holder,
    Installment,
    Item,
    Phone,
    Sender,
    Shipping,
    TransactionResult,
)
from .models import GatewayNotification, PaymentTransaction

logger = logging.getLogger("storefront.payments")

GATEWAY_METHODS = {
    PaymentMethod.CREDIT_CARD: "creditCard",
    PaymentMethod.PIX: "eft",
    PaymentMethod.BOLETO: "boleto",
}

PAYMENT_STATUS_FOR_GATEWAY = {
    GatewayStatus.PAID: PaymentStatus.PAID,
    GatewayStatus.AVAILABLE: PaymentStatus.PAID,
    GatewayStatus.RETURNED: PaymentStatus.REFUNDED,
    GatewayStatus.DEBITED: PaymentStatus.REFUNDED,
    GatewayStatus.CANCELLED: PaymentStatus.FAILED,
}


def payment_status_for(gateway_status: Optional[int]) -> str:
    """Map a processor status code; anything unmapped is still pending."""

    return PAYMENT_STATUS_FOR_GATEWAY.get(gateway_status, PaymentStatus.PENDING)


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _phone(raw: str) -> Optional[Phone]:
    digits = _digits(raw)
    if len(digits) < 10:
        return None
    return Phone(area_code=digits[:2], number=digits[2:])


def build_charge_request(
    order: Order,
    *,
    sender_hash: str = "",
    card_token: str = "",
    cpf: str = "",
    holder_name: str = "",
    birth_date: str = "",
    address: Optional[Address] = None,
) -> ChargeRequest:
    """Wire request for charging ``order.total``.

    Items go at their checkout unit price; shipping rides in the shipping
    block and the order discount as a negative extra amount, so the processor
    total equals the order total.
    """
    documents = [Document(type="CPF", value=_digits(cpf))] if cpf else []
    phone = _phone(order.phone)
    request = ChargeRequest(
        payment_method=GATEWAY_METHODS[order.payment_method],
        notification_url=getattr(settings, "PAGSEGURO_NOTIFICATION_URL", "") or None,
        redirect_url=getattr(settings, "PAGSEGURO_REDIRECT_URL", "") or None,
        sender=Sender(
            name=order.customer_name,
            email=order.email,
            phone=phone,
            documents=documents,
            hash=sender_hash or None,
        ),
        items=[
            Item(
                id=item.sku or str(item.product_id),
                description=(item.product_title or item.sku)[:100],
                amount=item.unit_price,
                quantity=item.quantity,
            )
            for item in order.items.all()
        ],
        reference=order.number,
        extra_amount=-order.discount if order.discount else None,
        shipping=Shipping(address=address, cost=order.shipping_cost, address_required=address is not None),
    )
    if order.payment_method == PaymentMethod.CREDIT_CARD:
        if not card_token:
            raise ValidationFailed("Card details are missing.")
        request.credit_card = CreditCard(
            token=card_token,
            installment=Installment(quantity=1, value=order.total),
            holder=Holder(
                name=holder_name or order.customer_name,
                documents=documents,
                birth_date=birth_date or None,
                phone=phone,
            ),
            billing_address=address,
        )
    elif order.payment_method == PaymentMethod.PIX:
        request.bank = Bank(name=getattr(settings, "PAGSEGURO_EFT_BANK", "itau"))
    return request


def apply_gateway_status(*, order_id: int, gateway_status: Optional[int], transaction_code: str) -> Order:
    """Drive the order state machine from a processor status code."""

    target = payment_status_for(gateway_status)
    if target == PaymentStatus.PAID:
        return mark_paid(order_id=order_id, transaction_code=transaction_code)
    if target == PaymentStatus.FAILED:
        return mark_payment_failed(order_id=order_id, reason=f"gateway status {gateway_status}")
    order = Order.objects.get(id=order_id)
    if target == PaymentStatus.REFUNDED:
        if order.payment_status == Order.PAYMENT_PAID:
            return refund_payment(order_id=order_id)
        logger.warning(
            "payments.refund_for_unpaid_order",
            extra={
                "event": "payments.refund_for_unpaid_order",
                "order_id": order_id,
                "transaction_code": transaction_code,
                "gateway_status": gateway_status,
            },
        )
    return order


def _record_attempt(order: Order, **fields) -> PaymentTransaction:
    return PaymentTransaction.objects.create(order=order, method=order.payment_method, amount=order.total, **fields)


@transaction.atomic
def _open_attempt(order_id: int, **charge_fields) -> tuple[Order, Optional[ChargeRequest], PaymentTransaction]:
    """Lock the order, check it can be charged and record the attempt.

    The attempt row is committed before the processor is called, so a second
    charge for the same order sees it and is refused instead of charging twice.
    """
    try:
        order = Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist:
        raise ValidationFailed("Order not found.")
    if order.status != Order.STATUS_PENDING or order.payment_status != Order.PAYMENT_PENDING:
        raise ValidationFailed("This order cannot be paid again.")
    if order.payment_transactions.filter(status=PaymentStatus.PENDING).exists():
        raise ValidationFailed("A payment for this order is already in progress.")

    if order.total <= Decimal("0.00"):
        # Fully covered by gift card and points
        mark_paid(order_id=order.id, transaction_code="")
        return order, None, _record_attempt(order, status=PaymentStatus.PAID)

    request = build_charge_request(order, **charge_fields)
    return order, request, _record_attempt(order, status=PaymentStatus.PENDING)


@transaction.atomic
def _settle_attempt(attempt: PaymentTransaction, result: TransactionResult) -> tuple[PaymentTransaction, bool]:
    """Store the processor's answer on the attempt.

    A notification for this charge may have been handled before the answer
    arrived. When it already moved the transaction past pending, its status is
    newer and only the payment details are filled in. Returns the transaction
    and whether the answer's status applies.
    """
    attempt = PaymentTransaction.objects.select_for_update().get(id=attempt.id)
    known = PaymentTransaction.objects.select_for_update().filter(code=result.code).exclude(id=attempt.id).first()
    if known is not None:
        if known.order_id != attempt.order_id:
            raise ConsistencyViolation(
                f"Transaction {result.code} belongs to order {known.order_id}, not {attempt.order_id}"
            )
        attempt.delete()
        attempt = known
    if attempt.code == result.code and attempt.status != PaymentStatus.PENDING:
        for field in ("payment_link", "qr_code", "emv"):
            if not getattr(attempt, field):
                setattr(attempt, field, getattr(result, field))
        attempt.save(update_fields=["payment_link", "qr_code", "emv", "updated_at"])
        return attempt, False

    attempt.code = result.code
    attempt.gateway_status = result.status
    attempt.status = payment_status_for(result.status)
    attempt.payment_link = result.payment_link
    attempt.qr_code = result.qr_code
    attempt.emv = result.emv
    attempt.save()
    return attempt, True


def charge_order(
    *,
    order_id: int,
    sender_hash: str = "",
    card_token: str = "",
    cpf: str = "",
    holder_name: str = "",
    birth_date: str = "",
    address: Optional[Address] = None,
    client: Optional[GatewayClient] = None,
) -> PaymentTransaction:
    """Submit the charge for a pending order and apply the processor's answer.

    An order with a charge still in progress cannot be charged again. A
    processor failure releases the order's stock and credits
    (``mark_payment_failed``) before the GatewayError is re-raised. A charge
    accepted but not yet settled keeps the order's stock for the payment
    method's hold.
    """
    order, request, attempt = _open_attempt(
        order_id,
        sender_hash=sender_hash,
        card_token=card_token,
        cpf=cpf,
        holder_name=holder_name,
        birth_date=birth_date,
        address=address,
    )
    if request is None:
        return attempt

    gateway = client or GatewayClient.from_settings()
    try:
        result = gateway.create_transaction(request)
    except GatewayError as exc:
        PaymentTransaction.objects.filter(id=attempt.id).update(
            status=PaymentStatus.FAILED, error_message=str(exc)[:500], updated_at=timezone.now()
        )
        mark_payment_failed(order_id=order.id, reason=str(exc))
        logger.warning(
            "payments.charge_failed",
            extra={"event": "payments.charge_failed", "order_id": order.id, "error": str(exc)},
        )
        raise
    finally:
        if client is None:
            gateway.close()

    txn, applies = _settle_attempt(attempt, result)
    logger.info(
        "payments.charged",
        extra={
            "event": "payments.charged",
            "order_id": order.id,
            "transaction_code": result.code,
            "gateway_status": result.status,
        },
    )
    if not applies:
        return txn
    apply_gateway_status(order_id=order.id, gateway_status=result.status, transaction_code=result.code)
    if txn.status == PaymentStatus.PENDING:
        hold_for_pending_payment(order_id=order.id)
    return txn


def create_checkout_session(*, client: Optional[GatewayClient] = None) -> str:
    gateway = client or GatewayClient.from_settings()
    try:
        return gateway.create_session()
    finally:
        if client is None:
            gateway.close()


def handle_notification(
    *, code: str, notification_type: str = "transaction", client: Optional[GatewayClient] = None
) -> PaymentTransaction:
    """Apply a processor notification exactly once.

    The details are fetched from the processor (the notification itself only
    carries a code). A code that was already processed raises
    NotificationReplay without touching the order.
    """
    code = (code or "").strip()
    if not code:
        raise ValidationFailed("Notification code is missing.")
    if GatewayNotification.objects.filter(code=code, processed_at__isnull=False).exists():
        raise NotificationReplay(f"Notification {code} already processed")

    gateway = client or GatewayClient.from_settings()
    try:
        result = gateway.get_notification(code)
    finally:
        if client is None:
            gateway.close()

    with transaction.atomic():
        note, _ = GatewayNotification.objects.get_or_create(
            code=code, defaults={"notification_type": notification_type}
        )
        note = GatewayNotification.objects.select_for_update().get(id=note.id)
        if note.processed_at:
            raise NotificationReplay(f"Notification {code} already processed")

        try:
            order = Order.objects.get(number=result.reference)
        except Order.DoesNotExist:
            raise ConsistencyViolation(f"Notification {code} references unknown order {result.reference!r}")

        txn = PaymentTransaction.objects.select_for_update().filter(code=result.code).first()
        if txn is None:
            # The charge call may still be waiting for its answer; take over its attempt
            txn = (
                order.payment_transactions.select_for_update()
                .filter(code="", status=PaymentStatus.PENDING)
                .order_by("-id")
                .first()
            )
            if txn is None:
                txn = _record_attempt(order, code=result.code)
            txn.code = result.code
        if txn.order_id != order.id:
            raise ConsistencyViolation(f"Transaction {result.code} belongs to order {txn.order_id}, not {order.id}")

        if txn.is_terminal:
            logger.info(
                "payments.notification_after_terminal",
                extra={
                    "event": "payments.notification_after_terminal",
                    "transaction_code": txn.code,
                    "status": txn.status,
                    "gateway_status": result.status,
                },
            )
        else:
            txn.gateway_status = result.status
            txn.status = payment_status_for(result.status)
            txn.save(update_fields=["code", "gateway_status", "status", "updated_at"])
            apply_gateway_status(order_id=order.id, gateway_status=result.status, transaction_code=txn.code)

        note.transaction = txn
        note.gateway_status = result.status
        note.processed_at = timezone.now()
        note.save(update_fields=["transaction", "gateway_status", "processed_at", "updated_at"])

    logger.info(
        "payments.notification_processed",
        extra={
            "event": "payments.notification_processed",
            "notification_code": code,
            "transaction_code": txn.code,
            "order_id": order.id,
            "gateway_status": result.status,
        },
    )
    return txn


# EOF
