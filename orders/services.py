"""Order services: checkout, the order state machine and request idempotency.

Status (fulfillment) and payment status move independently:

    status:         pending -> confirmed -> processing -> shipped -> delivered
                    any non-terminal status -> cancelled | refunded
    payment_status: pending -> paid | failed, paid -> refunded

Stock follows payment: a paid order has every reservation committed, and an
order that will never be paid has every reservation released.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable, Iterable, Optional, Tuple

from catalog.selectors import get_product_snapshot
from common.choices import PaymentMethod
from common.exceptions import ConsistencyViolation, ValidationFailed
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.utils import timezone
from inventory.services import (
    active_reservations_for,
    commit_reservation,
    create_reservation,
    extend_reservations_for,
    record_return,
    release_reservations_for,
    reservation_expiry,
    reservations_for,
)
from pricing.discounts import (
    SOURCE_COUPON,
    SOURCE_GIFT_CARD,
    SOURCE_LOYALTY,
    SOURCE_REFERRAL,
    DiscountStack,
    compose_discounts,
)
from pricing.shipping import ShippingQuote, ShippingRates, calculate_shipping, cart_weight, normalize_postal_code
from promotions.selectors import coupon_snapshot, gift_card_snapshot, loyalty_snapshot, referral_snapshot
from promotions.services import hold_order_credits, redeem_for_order, restore_order_credits

from .emails import schedule_order_email
from .models import IdempotencyKey, Order, OrderItem

logger = logging.getLogger("storefront.orders")

TERMINAL_STATUSES = {Order.STATUS_DELIVERED, Order.STATUS_CANCELLED, Order.STATUS_REFUNDED}

ALLOWED_TRANSITIONS = {
    Order.STATUS_PENDING: {Order.STATUS_CONFIRMED, Order.STATUS_CANCELLED, Order.STATUS_REFUNDED},
    Order.STATUS_CONFIRMED: {Order.STATUS_PROCESSING, Order.STATUS_CANCELLED, Order.STATUS_REFUNDED},
    Order.STATUS_PROCESSING: {Order.STATUS_SHIPPED, Order.STATUS_CANCELLED, Order.STATUS_REFUNDED},
    Order.STATUS_SHIPPED: {Order.STATUS_DELIVERED, Order.STATUS_CANCELLED, Order.STATUS_REFUNDED},
    Order.STATUS_DELIVERED: set(),
    Order.STATUS_CANCELLED: set(),
    Order.STATUS_REFUNDED: set(),
}

# Fulfillment past pending only makes sense for money we hold
REQUIRES_PAYMENT = {
    Order.STATUS_CONFIRMED,
    Order.STATUS_PROCESSING,
    Order.STATUS_SHIPPED,
    Order.STATUS_DELIVERED,
}


class OrderTransitionError(ValidationFailed):
    pass


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    sku: str
    title: str
    quantity: int
    unit_price: Decimal
    unit_weight_kg: Optional[Decimal]

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CheckoutQuote:
    lines: tuple[CheckoutLine, ...]
    shipping: ShippingQuote
    discounts: DiscountStack

    @property
    def subtotal(self) -> Decimal:
        return self.discounts.subtotal

    @property
    def total(self) -> Decimal:
        return self.discounts.final_total


@dataclass(frozen=True)
class PlacedOrder:
    order: Order
    quote: CheckoutQuote


def _log_transition(order: Order, *, field: str, prev: str, new: str) -> None:
    logger.info(
        "orders.status_changed",
        extra={
            "event": "orders.status_changed",
            "order_id": order.id,
            "order_number": order.number,
            "field": field,
            "status_from": prev,
            "status_to": new,
        },
    )


def _lock_order(order_id: int) -> Order:
    try:
        return Order.objects.select_for_update().get(id=order_id)
    except Order.DoesNotExist:
        raise ValidationFailed("Order not found.")


# Checkout


def resolve_lines(items: Iterable[dict]) -> list[CheckoutLine]:
    """Merge requested items by product and capture current catalog price/weight."""

    quantities: dict[int, int] = {}
    for entry in items or []:
        try:
            product_id = int(entry["product_id"])
            quantity = int(entry["quantity"])
        except (KeyError, TypeError, ValueError):
            raise ValidationFailed("Each item needs a product_id and a quantity.")
        if quantity <= 0:
            raise ValidationFailed("Item quantity must be at least 1.")
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    if not quantities:
        raise ValidationFailed("Your order has no items.")

    lines = []
    for product_id, quantity in quantities.items():
        snapshot = get_product_snapshot(product_id)
        if snapshot is None:
            raise ValidationFailed(f"Product {product_id} is not available.")
        lines.append(
            CheckoutLine(
                product_id=snapshot.id,
                sku=snapshot.sku,
                title=snapshot.title,
                quantity=quantity,
                unit_price=snapshot.price,
                unit_weight_kg=snapshot.weight_kg,
            )
        )
    return lines


def price_checkout(
    *,
    items: Iterable[dict],
    postal_code: str,
    user=None,
    coupon_code: str = "",
    referral_code: str = "",
    gift_card_code: str = "",
    loyalty_points: int = 0,
    now=None,
) -> CheckoutQuote:
    """Price a prospective order: catalog prices, shipping, then the discount stack."""

    now = now or timezone.now()
    lines = resolve_lines(items)
    subtotal = sum((line.line_total for line in lines), Decimal("0.00"))
    weight = cart_weight((line.unit_weight_kg, line.quantity) for line in lines)
    shipping = calculate_shipping(postal_code, weight, subtotal, rates=ShippingRates.from_settings(), now=now)
    stack = compose_discounts(
        subtotal,
        shipping.cost,
        coupon=coupon_snapshot(coupon_code),
        referral=referral_snapshot(referral_code),
        loyalty=loyalty_snapshot(user, loyalty_points),
        gift_card=gift_card_snapshot(gift_card_code),
        now=now,
    )
    return CheckoutQuote(lines=tuple(lines), shipping=shipping, discounts=stack)


def _validate_customer(customer_name: str, email: str, payment_method: str) -> None:
    if not (customer_name or "").strip():
        raise ValidationFailed("Customer name is required.")
    try:
        validate_email(email or "")
    except DjangoValidationError:
        raise ValidationFailed("Enter a valid email address.")
    if payment_method not in PaymentMethod.values:
        raise ValidationFailed("Choose a valid payment method.")


@transaction.atomic
def place_order(
    *,
    user=None,
    customer_name: str,
    email: str,
    phone: str = "",
    postal_code: str,
    items: Iterable[dict],
    payment_method: str,
    coupon_code: str = "",
    referral_code: str = "",
    gift_card_code: str = "",
    loyalty_points: int = 0,
    now=None,
) -> PlacedOrder:
    """Create a pending order and hold its stock and credits.

    Everything happens in one transaction: an AdmissionDenied on any line, or a
    gift card/points balance that moved since pricing, leaves nothing behind.
    """
    now = now or timezone.now()
    _validate_customer(customer_name, email, payment_method)
    postal_code = normalize_postal_code(postal_code)
    if loyalty_points and not getattr(user, "is_authenticated", False):
        raise ValidationFailed("Sign in to redeem loyalty points.")

    quote = price_checkout(
        items=items,
        postal_code=postal_code,
        user=user,
        coupon_code=coupon_code,
        referral_code=referral_code,
        gift_card_code=gift_card_code,
        loyalty_points=loyalty_points,
        now=now,
    )
    stack = quote.discounts
    loyalty = stack.applied_for(SOURCE_LOYALTY)

    order = Order.objects.create(
        user=user if getattr(user, "is_authenticated", False) else None,
        customer_name=customer_name.strip(),
        email=email.strip(),
        phone=(phone or "").strip(),
        postal_code=postal_code,
        subtotal=stack.subtotal,
        shipping_cost=stack.shipping_cost,
        discount=stack.discount,
        total=stack.final_total,
        payment_method=payment_method,
        coupon_code=stack.code_for(SOURCE_COUPON),
        referral_code=stack.code_for(SOURCE_REFERRAL),
        gift_card_code=stack.code_for(SOURCE_GIFT_CARD),
        gift_card_amount=stack.amount_for(SOURCE_GIFT_CARD),
        loyalty_points_redeemed=(loyalty.points_used or 0) if loyalty else 0,
    )
    order.number = f"ORD-{int(order.id):06d}"
    order.save(update_fields=["number"])

    expires_at = reservation_expiry(now)
    for line in quote.lines:
        OrderItem.objects.create(
            order=order,
            product_id=line.product_id,
            product_title=line.title,
            sku=line.sku,
            quantity=line.quantity,
            unit_price=line.unit_price,
            unit_weight_kg=line.unit_weight_kg,
        )
        create_reservation(
            product_id=line.product_id,
            quantity=line.quantity,
            reference=order.reservation_reference,
            expires_at=expires_at,
        )
    hold_order_credits(order)

    logger.info(
        "orders.placed",
        extra={
            "event": "orders.placed",
            "order_id": order.id,
            "order_number": order.number,
            "user_id": order.user_id,
            "total": str(order.total),
            "lines": len(quote.lines),
            "rejected_codes": [r.reason for r in stack.rejections],
        },
    )
    return PlacedOrder(order=order, quote=quote)


# Payment transitions


@transaction.atomic
def _mark_paid(*, order_id: int, transaction_code: str) -> Order:
    order = _lock_order(order_id)
    if order.payment_status in (Order.PAYMENT_PAID, Order.PAYMENT_REFUNDED):
        return order
    if order.status == Order.STATUS_CANCELLED:
        raise ConsistencyViolation(f"Payment {transaction_code} arrived for cancelled order {order.number}")

    reservations = list(reservations_for(order.reservation_reference))
    if not reservations:
        raise ConsistencyViolation(f"Order {order.number} has no reservations to commit")
    for res in reservations:
        commit_reservation(reservation_id=res.id, reference=order.reservation_reference)

    prev_payment = order.payment_status
    order.payment_status = Order.PAYMENT_PAID
    order.paid_at = timezone.now()
    fields = ["payment_status", "paid_at", "updated_at"]
    prev_status = order.status
    if order.status == Order.STATUS_PENDING:
        order.status = Order.STATUS_CONFIRMED
        fields.append("status")
    order.save(update_fields=fields)
    redeem_for_order(order)

    _log_transition(order, field="payment_status", prev=prev_payment, new=order.payment_status)
    if prev_status != order.status:
        _log_transition(order, field="status", prev=prev_status, new=order.status)
    schedule_order_email("paid", order.id)
    return order


def mark_paid(*, order_id: int, transaction_code: str = "") -> Order:
    """Record a successful payment and commit every reservation of the order.

    Idempotent for an order that is already paid. A reservation that can no
    longer be committed (released by timeout or cancellation) rolls back the
    whole transition and raises ConsistencyViolation.
    """
    try:
        return _mark_paid(order_id=order_id, transaction_code=transaction_code)
    except ConsistencyViolation as exc:
        logger.error(
            "orders.consistency_violation",
            extra={
                "event": "orders.consistency_violation",
                "order_id": order_id,
                "transaction_code": transaction_code,
                "detail": str(exc),
            },
        )
        raise


def _release_order(order: Order) -> int:
    released = release_reservations_for(reference=order.reservation_reference)
    restore_order_credits(order)
    return released


@transaction.atomic
def mark_payment_failed(*, order_id: int, reason: str = "") -> Order:
    """Record a failed payment and give back stock and credits. Idempotent."""

    order = _lock_order(order_id)
    if order.payment_status != Order.PAYMENT_PENDING:
        if order.payment_status == Order.PAYMENT_PAID:
            logger.warning(
                "orders.failure_after_payment",
                extra={"event": "orders.failure_after_payment", "order_id": order.id, "reason": reason},
            )
        return order
    released = _release_order(order)
    order.payment_status = Order.PAYMENT_FAILED
    order.save(update_fields=["payment_status", "updated_at"])
    _log_transition(order, field="payment_status", prev=Order.PAYMENT_PENDING, new=order.payment_status)
    logger.info(
        "orders.payment_failed",
        extra={
            "event": "orders.payment_failed",
            "order_id": order.id,
            "reservations_released": released,
            "reason": reason,
        },
    )
    return order


@transaction.atomic
def refund_payment(*, order_id: int, restock: bool = False) -> Order:
    """Move a paid order to refunded; optionally put its units back on hand."""

    order = _lock_order(order_id)
    if order.payment_status == Order.PAYMENT_REFUNDED:
        return order
    if order.payment_status != Order.PAYMENT_PAID:
        raise OrderTransitionError("Only paid orders can be refunded.")

    order.payment_status = Order.PAYMENT_REFUNDED
    fields = ["payment_status", "updated_at"]
    prev_status = order.status
    if order.status not in TERMINAL_STATUSES:
        order.status = Order.STATUS_REFUNDED
        fields.append("status")
    order.save(update_fields=fields)

    if restock:
        for item in order.items.all():
            record_return(
                product_id=item.product_id,
                quantity=item.quantity,
                reference=order.reservation_reference,
                reason="Refunded order",
            )
    _log_transition(order, field="payment_status", prev=Order.PAYMENT_PAID, new=order.payment_status)
    if prev_status != order.status:
        _log_transition(order, field="status", prev=prev_status, new=order.status)
        schedule_order_email("status", order.id)
    return order


# Fulfillment transitions


@transaction.atomic
def transition_status(*, order_id: int, new_status: str, tracking_number: Optional[str] = None) -> Order:
    order = _lock_order(order_id)
    if new_status not in ALLOWED_TRANSITIONS:
        raise OrderTransitionError(f"Unknown status {new_status!r}.")
    if order.status == new_status:
        return order
    if new_status not in ALLOWED_TRANSITIONS[order.status]:
        raise OrderTransitionError(f"Cannot move order from {order.status} to {new_status}.")
    if new_status in REQUIRES_PAYMENT and order.payment_status != Order.PAYMENT_PAID:
        raise OrderTransitionError(f"Order must be paid before it is {new_status}.")

    if new_status == Order.STATUS_REFUNDED:
        if order.payment_status != Order.PAYMENT_PAID:
            raise OrderTransitionError("Only paid orders can be refunded.")
        return refund_payment(order_id=order.id)

    prev = order.status
    fields = ["status", "updated_at"]
    now = timezone.now()
    if new_status == Order.STATUS_SHIPPED:
        tracking = (tracking_number or order.tracking_number or "").strip()
        if not tracking:
            raise OrderTransitionError("A tracking number is required to ship an order.")
        order.tracking_number = tracking
        order.shipped_at = now
        fields += ["tracking_number", "shipped_at"]
    elif new_status == Order.STATUS_DELIVERED:
        order.delivered_at = now
        fields.append("delivered_at")
    elif new_status == Order.STATUS_CANCELLED and order.payment_status != Order.PAYMENT_PAID:
        _release_order(order)

    order.status = new_status
    order.save(update_fields=fields)
    _log_transition(order, field="status", prev=prev, new=new_status)
    schedule_order_email("status", order.id)
    return order


def cancel_order(*, order_id: int) -> Order:
    return transition_status(order_id=order_id, new_status=Order.STATUS_CANCELLED)


def hold_for_pending_payment(*, order_id: int, now=None) -> int:
    """Keep an accepted but unsettled charge's stock past the checkout window.

    Boleto and PIX charges (and cards under review) settle hours or days after
    the processor accepts them; their reservations are extended to the hold
    configured for the payment method in ``PENDING_PAYMENT_HOLD_HOURS``.
    """
    order = Order.objects.get(id=order_id)
    if order.status != Order.STATUS_PENDING or order.payment_status != Order.PAYMENT_PENDING:
        return 0
    hours = getattr(settings, "PENDING_PAYMENT_HOLD_HOURS", {}).get(order.payment_method)
    if not hours:
        return 0
    expires_at = (now or timezone.now()) + timedelta(hours=int(hours))
    return extend_reservations_for(reference=order.reservation_reference, expires_at=expires_at)


def expire_stale_orders(*, now=None) -> int:
    """Cancel unpaid pending orders that no longer hold live stock.

    An order is stale once it is older than the reservation window and none of
    its reservations is still active and unexpired, so an order whose charge is
    awaiting settlement survives until its extended hold runs out.
    """
    now = now or timezone.now()
    ttl = int(getattr(settings, "RESERVATION_TTL_MINUTES", 30))
    cutoff = now - timedelta(minutes=ttl)
    stale = Order.objects.filter(
        status=Order.STATUS_PENDING,
        payment_status__in=[Order.PAYMENT_PENDING, Order.PAYMENT_FAILED],
        created_at__lt=cutoff,
    ).values_list("id", flat=True)
    count = 0
    for order_id in list(stale):
        with transaction.atomic():
            order = _lock_order(order_id)
            if order.status != Order.STATUS_PENDING or order.payment_status == Order.PAYMENT_PAID:
                continue
            if active_reservations_for(order.reservation_reference).filter(expires_at__gt=now).exists():
                continue
            _release_order(order)
            order.status = Order.STATUS_CANCELLED
            order.save(update_fields=["status", "updated_at"])
            _log_transition(order, field="status", prev=Order.STATUS_PENDING, new=order.status)
        count += 1
    if count:
        logger.info("orders.expired", extra={"event": "orders.expired", "count": count})
    return count


# Idempotency


def with_idempotency(
    *,
    key: str,
    user,
    path: str,
    method: str,
    handler: Callable[[], Tuple[dict, int]],
    request_hash: Optional[str] = None,
) -> Tuple[dict, int]:
    """Run handler idempotently and persist its response for the given key and scope.

    - Scope is derived from the caller: for authenticated users, "user:<id>"; otherwise "anon".
    - If a record exists and the stored `request_hash` differs from the provided one, returns 409.
    - If a record exists but response is not yet stored, returns 409 to indicate in-progress.
    - If the handler raises, the record is dropped so the client can retry with the same key.
    """

    user_id = getattr(user, "id", None) if getattr(user, "is_authenticated", False) else None
    scope = f"user:{user_id}" if user_id else "anon"
    method = str(method).upper()
    path = str(path)

    try:
        with transaction.atomic():
            idem = IdempotencyKey.objects.create(
                key=key,
                user_id=user_id,
                scope=scope,
                path=path,
                method=method,
                request_hash=request_hash,
                expires_at=timezone.now() + timedelta(hours=24),
            )
    except IntegrityError:
        idem = IdempotencyKey.objects.get(key=key, scope=scope, path=path, method=method)
        # Guard against key reuse with different fingerprints
        if idem.request_hash and request_hash and idem.request_hash != request_hash:
            return {"detail": "Idempotency key reused with different request payload"}, 409
        if idem.response_json is not None and idem.response_code is not None:
            return idem.response_json, int(idem.response_code)
        return {"detail": "Request in progress"}, 409

    try:
        body, code = handler()
    except Exception:
        IdempotencyKey.objects.filter(id=idem.id).delete()
        raise

    def _json_safe(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, dict):
            return {k: _json_safe(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [_json_safe(v) for v in value]
        return value

    IdempotencyKey.objects.filter(id=idem.id).update(response_json=_json_safe(body), response_code=code)
    return body, code


def compute_request_hash(data: Optional[dict]) -> Optional[str]:
    """Compute a canonical SHA256 hash of the request body.

    Uses sorted keys JSON representation to stabilize the hash across equivalent payloads.
    Returns None when data is falsy.
    """
    if not data:
        return None
    try:
        payload = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return None
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# EOF
