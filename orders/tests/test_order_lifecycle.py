from datetime import timedelta
from decimal import Decimal

import pytest
from common.exceptions import ConsistencyViolation
from django.utils import timezone
from inventory.models import StockItem, StockMovement, StockReservation
from inventory.services import expire_reservations
from orders.models import Order
from orders.services import (
    OrderTransitionError,
    cancel_order,
    expire_stale_orders,
    mark_paid,
    mark_payment_failed,
    place_order,
    refund_payment,
    transition_status,
)
from orders.tests.factories import checkout_payload, stocked_product
from promotions.models import Coupon, GiftCard, LoyaltyAccount
from promotions.tests.factories import CouponFactory, GiftCardFactory, UserFactory


def _stock(product):
    item = StockItem.objects.get(product=product)
    return item.quantity, item.reserved


@pytest.fixture
def placed(db):
    product = stocked_product(quantity=5)
    order = place_order(**checkout_payload((product, 2))).order
    return product, order


@pytest.mark.django_db
def test_paid_order_commits_every_reservation(placed, django_capture_on_commit_callbacks, mailoutbox):
    product, order = placed

    with django_capture_on_commit_callbacks(execute=True):
        paid = mark_paid(order_id=order.id, transaction_code="TX-1")

    assert paid.payment_status == Order.PAYMENT_PAID
    assert paid.status == Order.STATUS_CONFIRMED
    assert paid.paid_at is not None
    assert _stock(product) == (3, 0)
    assert not StockReservation.objects.filter(
        reference=order.reservation_reference, state=StockReservation.STATE_ACTIVE
    ).exists()
    outbound = StockMovement.objects.get(stock_item__product=product, movement_type=StockMovement.TYPE_OUTBOUND)
    assert (outbound.quantity, outbound.reference) == (-2, order.reservation_reference)
    assert len(mailoutbox) == 1
    assert order.number in mailoutbox[0].subject


@pytest.mark.django_db
def test_mark_paid_twice_commits_once(placed, django_capture_on_commit_callbacks, mailoutbox):
    product, order = placed

    with django_capture_on_commit_callbacks(execute=True):
        mark_paid(order_id=order.id)
        mark_paid(order_id=order.id)

    assert _stock(product) == (3, 0)
    assert StockMovement.objects.filter(movement_type=StockMovement.TYPE_OUTBOUND).count() == 1
    assert len(mailoutbox) == 1


@pytest.mark.django_db
def test_checkout_claims_coupon_use_and_payment_awards_points(django_capture_on_commit_callbacks):
    product = stocked_product(quantity=5)
    CouponFactory(code="WELCOME10")
    user = UserFactory()
    order = place_order(user=user, **checkout_payload((product, 1), coupon_code="WELCOME10")).order
    assert Coupon.objects.get(code="WELCOME10").used_count == 1

    with django_capture_on_commit_callbacks(execute=True):
        mark_paid(order_id=order.id)

    assert Coupon.objects.get(code="WELCOME10").used_count == 1
    # R$59.91 at the bronze 1x rate
    assert LoyaltyAccount.objects.get(user=user).points == 59


@pytest.mark.django_db
def test_single_use_coupon_discounts_one_order_until_it_is_released(django_capture_on_commit_callbacks):
    product = stocked_product(quantity=5)
    CouponFactory(code="ONCE", max_uses=1)

    first = place_order(**checkout_payload((product, 1), coupon_code="ONCE")).order
    second = place_order(**checkout_payload((product, 1), coupon_code="ONCE")).order
    assert first.coupon_code == "ONCE" and first.discount > 0
    assert second.coupon_code == "" and second.discount == Decimal("0.00")

    with django_capture_on_commit_callbacks(execute=True):
        mark_paid(order_id=first.id)
        mark_paid(order_id=second.id)
    assert Coupon.objects.get(code="ONCE").used_count == 1

    third = place_order(**checkout_payload((product, 1), coupon_code="ONCE")).order
    assert third.coupon_code == ""


@pytest.mark.django_db
def test_failed_payment_gives_the_coupon_use_back():
    product = stocked_product(quantity=5)
    CouponFactory(code="ONCE", max_uses=1)
    order = place_order(**checkout_payload((product, 1), coupon_code="ONCE")).order

    mark_payment_failed(order_id=order.id, reason="card declined")
    cancel_order(order_id=order.id)

    assert Coupon.objects.get(code="ONCE").used_count == 0
    retry = place_order(**checkout_payload((product, 1), coupon_code="ONCE")).order
    assert retry.coupon_code == "ONCE"


@pytest.mark.django_db
def test_payment_failure_returns_stock_and_gift_card(django_capture_on_commit_callbacks):
    product = stocked_product(quantity=5)
    card = GiftCardFactory(initial_value=Decimal("30.00"))
    order = place_order(**checkout_payload((product, 2), gift_card_code=card.code)).order
    assert _stock(product) == (5, 2)

    failed = mark_payment_failed(order_id=order.id, reason="card declined")
    failed_again = mark_payment_failed(order_id=order.id, reason="card declined")

    assert failed.payment_status == failed_again.payment_status == Order.PAYMENT_FAILED
    assert failed.status == Order.STATUS_PENDING
    assert _stock(product) == (5, 0)
    assert GiftCard.objects.get(id=card.id).balance == Decimal("30.00")


@pytest.mark.django_db
def test_failure_after_payment_is_ignored(placed):
    product, order = placed
    mark_paid(order_id=order.id)

    result = mark_payment_failed(order_id=order.id)

    assert result.payment_status == Order.PAYMENT_PAID
    assert _stock(product) == (3, 0)


@pytest.mark.django_db
def test_late_payment_for_cancelled_order_is_a_consistency_violation(placed):
    product, order = placed
    cancel_order(order_id=order.id)

    with pytest.raises(ConsistencyViolation):
        mark_paid(order_id=order.id, transaction_code="TX-LATE")

    order.refresh_from_db()
    assert order.payment_status == Order.PAYMENT_PENDING
    assert _stock(product) == (5, 0)


@pytest.mark.django_db
def test_payment_after_reservation_timeout_is_a_consistency_violation(placed):
    product, order = placed
    assert expire_reservations(now=timezone.now() + timedelta(hours=1)) == 1

    with pytest.raises(ConsistencyViolation):
        mark_paid(order_id=order.id)

    order.refresh_from_db()
    assert order.payment_status == Order.PAYMENT_PENDING
    assert _stock(product) == (5, 0)


@pytest.mark.django_db
def test_fulfillment_requires_payment(placed):
    _, order = placed

    with pytest.raises(OrderTransitionError):
        transition_status(order_id=order.id, new_status=Order.STATUS_CONFIRMED)


@pytest.mark.django_db
def test_shipping_requires_tracking_number(placed):
    _, order = placed
    mark_paid(order_id=order.id)
    transition_status(order_id=order.id, new_status=Order.STATUS_PROCESSING)

    with pytest.raises(OrderTransitionError):
        transition_status(order_id=order.id, new_status=Order.STATUS_SHIPPED)

    shipped = transition_status(order_id=order.id, new_status=Order.STATUS_SHIPPED, tracking_number=" BR123 ")
    assert (shipped.status, shipped.tracking_number) == (Order.STATUS_SHIPPED, "BR123")
    assert shipped.shipped_at is not None

    delivered = transition_status(order_id=order.id, new_status=Order.STATUS_DELIVERED)
    assert delivered.delivered_at is not None


@pytest.mark.django_db
def test_transitions_only_move_forward(placed):
    _, order = placed
    mark_paid(order_id=order.id)
    transition_status(order_id=order.id, new_status=Order.STATUS_PROCESSING)

    with pytest.raises(OrderTransitionError):
        transition_status(order_id=order.id, new_status=Order.STATUS_CONFIRMED)
    with pytest.raises(OrderTransitionError):
        transition_status(order_id=order.id, new_status="lost")


@pytest.mark.django_db
def test_terminal_orders_do_not_move(placed):
    _, order = placed
    cancel_order(order_id=order.id)

    assert cancel_order(order_id=order.id).status == Order.STATUS_CANCELLED
    with pytest.raises(OrderTransitionError):
        transition_status(order_id=order.id, new_status=Order.STATUS_PENDING)


@pytest.mark.django_db
def test_cancelling_unpaid_order_releases_stock(placed, django_capture_on_commit_callbacks, mailoutbox):
    product, order = placed

    with django_capture_on_commit_callbacks(execute=True):
        cancelled = cancel_order(order_id=order.id)

    assert cancelled.status == Order.STATUS_CANCELLED
    assert cancelled.payment_status == Order.PAYMENT_PENDING
    assert _stock(product) == (5, 0)
    assert "Cancelled" in mailoutbox[0].subject


@pytest.mark.django_db
def test_cancelling_paid_order_keeps_payment_and_stock_committed(placed):
    product, order = placed
    mark_paid(order_id=order.id)

    cancelled = cancel_order(order_id=order.id)

    assert cancelled.status == Order.STATUS_CANCELLED
    assert cancelled.payment_status == Order.PAYMENT_PAID
    assert _stock(product) == (3, 0)


@pytest.mark.django_db
def test_refund_with_restock_puts_units_back(placed):
    product, order = placed
    mark_paid(order_id=order.id)

    refunded = refund_payment(order_id=order.id, restock=True)

    assert (refunded.status, refunded.payment_status) == (Order.STATUS_REFUNDED, Order.PAYMENT_REFUNDED)
    assert _stock(product) == (5, 0)
    returns = StockMovement.objects.filter(stock_item__product=product, movement_type=StockMovement.TYPE_RETURN)
    assert returns.count() == 1

    # A second refund is a no-op
    refund_payment(order_id=order.id, restock=True)
    assert _stock(product) == (5, 0)


@pytest.mark.django_db
def test_refund_requires_payment(placed):
    _, order = placed

    with pytest.raises(OrderTransitionError):
        refund_payment(order_id=order.id)


@pytest.mark.django_db
def test_expire_stale_orders_cancels_and_releases():
    product = stocked_product(quantity=5)
    stale = place_order(**checkout_payload((product, 1))).order
    paid = place_order(**checkout_payload((product, 1))).order
    mark_paid(order_id=paid.id)

    assert expire_stale_orders(now=timezone.now() + timedelta(minutes=5)) == 0
    assert expire_stale_orders(now=timezone.now() + timedelta(minutes=31)) == 1

    stale.refresh_from_db()
    paid.refresh_from_db()
    assert stale.status == Order.STATUS_CANCELLED
    assert paid.status == Order.STATUS_CONFIRMED
    assert _stock(product) == (4, 0)


# EOF
