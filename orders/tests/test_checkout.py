from decimal import Decimal

import pytest
from common.exceptions import AdmissionDenied, ValidationFailed
from inventory.models import StockItem, StockReservation
from orders.models import Order, OrderItem
from orders.services import place_order, price_checkout
from orders.tests.factories import checkout_payload, stocked_product
from promotions.models import GiftCard, LoyaltyAccount
from promotions.tests.factories import CouponFactory, GiftCardFactory, LoyaltyAccountFactory, UserFactory


@pytest.mark.django_db
def test_place_order_snapshots_prices_and_reserves_stock():
    product = stocked_product(quantity=5)

    placed = place_order(**checkout_payload((product, 2)))
    order = placed.order

    assert order.number == f"ORD-{order.id:06d}"
    assert order.status == Order.STATUS_PENDING
    assert order.payment_status == Order.PAYMENT_PENDING
    assert order.postal_code == "01310100"
    assert order.subtotal == Decimal("99.80")
    assert order.shipping_cost == Decimal("15.00")
    assert order.total == Decimal("114.80")

    item = OrderItem.objects.get(order=order)
    assert (item.sku, item.quantity, item.unit_price) == (product.sku, 2, Decimal("49.90"))

    reservation = StockReservation.objects.get(reference=order.reservation_reference)
    assert reservation.state == StockReservation.STATE_ACTIVE
    assert reservation.expires_at is not None
    stock = StockItem.objects.get(product=product)
    assert (stock.quantity, stock.reserved, stock.available) == (5, 2, 3)


@pytest.mark.django_db
def test_later_catalog_price_change_does_not_touch_order():
    product = stocked_product(quantity=5)
    order = place_order(**checkout_payload((product, 1))).order

    product.price = Decimal("99.00")
    product.save()

    order.refresh_from_db()
    assert order.subtotal == Decimal("49.90")
    assert order.items.get().unit_price == Decimal("49.90")


@pytest.mark.django_db
def test_oversell_is_refused_and_leaves_nothing_behind():
    plenty = stocked_product(quantity=10)
    scarce = stocked_product(quantity=1)

    with pytest.raises(AdmissionDenied):
        place_order(**checkout_payload((plenty, 3), (scarce, 2)))

    assert Order.objects.count() == 0
    assert StockReservation.objects.count() == 0
    assert StockItem.objects.get(product=plenty).reserved == 0


@pytest.mark.django_db
def test_duplicate_lines_are_merged():
    product = stocked_product(quantity=5)

    order = place_order(**checkout_payload((product, 1), (product, 2))).order

    assert order.items.get().quantity == 3
    assert StockItem.objects.get(product=product).reserved == 3


@pytest.mark.django_db
def test_free_shipping_over_threshold():
    product = stocked_product(quantity=5, price=Decimal("80.00"))

    quote = price_checkout(items=[{"product_id": product.id, "quantity": 2}], postal_code="01310100")

    assert quote.shipping.is_free_shipping is True
    assert quote.shipping.original_cost == Decimal("15.00")
    assert quote.total == Decimal("160.00")


@pytest.mark.django_db
def test_invalid_coupon_is_reported_but_order_goes_through():
    product = stocked_product(quantity=5)
    CouponFactory(code="WELCOME10")

    placed = place_order(**checkout_payload((product, 1), coupon_code="welcome10", referral_code="NOPE99"))

    assert placed.order.coupon_code == "WELCOME10"
    assert placed.order.discount == Decimal("4.99")
    assert placed.order.referral_code == ""
    assert [(r.source, r.reason) for r in placed.quote.discounts.rejections] == [("referral", "not_found")]


@pytest.mark.django_db
def test_gift_card_balance_is_held_at_checkout():
    product = stocked_product(quantity=5)
    card = GiftCardFactory(initial_value=Decimal("20.00"))

    order = place_order(**checkout_payload((product, 1), gift_card_code=card.code)).order

    card.refresh_from_db()
    assert order.gift_card_amount == Decimal("20.00")
    assert card.balance == Decimal("0.00")
    assert order.total == Decimal("44.90")


@pytest.mark.django_db
def test_loyalty_points_are_debited_for_registered_user():
    product = stocked_product(quantity=5)
    account = LoyaltyAccountFactory(points=200)

    order = place_order(user=account.user, **checkout_payload((product, 1), loyalty_points=100)).order

    assert order.loyalty_points_redeemed == 100
    assert order.discount == Decimal("10.00")
    assert LoyaltyAccount.objects.get(id=account.id).points == 100


@pytest.mark.django_db
def test_guest_cannot_redeem_points():
    product = stocked_product(quantity=5)

    with pytest.raises(ValidationFailed):
        place_order(**checkout_payload((product, 1), loyalty_points=50))


@pytest.mark.django_db
@pytest.mark.parametrize(
    "overrides",
    [
        {"postal_code": "123"},
        {"email": "not-an-email"},
        {"customer_name": "  "},
        {"payment_method": "cash"},
        {"items": []},
        {"items": [{"product_id": 999999, "quantity": 1}]},
    ],
)
def test_bad_checkout_input_is_rejected(overrides):
    product = stocked_product(quantity=5)

    with pytest.raises(ValidationFailed):
        place_order(**checkout_payload((product, 1), **overrides))
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_inactive_product_cannot_be_bought():
    product = stocked_product(quantity=5, status="inactive")

    with pytest.raises(ValidationFailed):
        place_order(**checkout_payload((product, 1)))


@pytest.mark.django_db
def test_registered_user_is_attached_to_order():
    product = stocked_product(quantity=5)
    user = UserFactory()

    order = place_order(user=user, **checkout_payload((product, 1))).order

    assert order.user_id == user.id
    assert GiftCard.objects.count() == 0


# EOF
