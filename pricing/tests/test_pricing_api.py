from decimal import Decimal

import pytest
from inventory.models import StockItem
from orders.models import Order
from orders.tests.factories import stocked_product
from promotions.models import GiftCard
from promotions.tests.factories import CouponFactory, GiftCardFactory
from rest_framework.test import APIClient


@pytest.mark.django_db
def test_shipping_quote_charges_extra_weight():
    r = APIClient().post(
        "/api/v1/pricing/shipping/",
        {"postal_code": "01310-100", "weight_kg": "1.500", "subtotal": "100.00"},
        format="json",
    )

    assert r.status_code == 200
    body = r.json()
    assert body["cost"] == "17.50"
    assert body["missing_for_free_shipping"] == "50.00"
    assert body["estimated_days"] == 3


@pytest.mark.django_db
def test_shipping_quote_is_free_at_threshold():
    r = APIClient().post(
        "/api/v1/pricing/shipping/",
        {"postal_code": "90010-000", "weight_kg": "3", "subtotal": "150.00"},
        format="json",
    )

    body = r.json()
    assert body["is_free_shipping"] is True
    assert body["cost"] == "0.00"
    assert body["original_cost"] == "25.00"


@pytest.mark.django_db
def test_shipping_quote_rejects_bad_cep():
    r = APIClient().post(
        "/api/v1/pricing/shipping/",
        {"postal_code": "1234", "weight_kg": "1", "subtotal": "10.00"},
        format="json",
    )

    assert r.status_code == 400
    assert "CEP" in r.json()["detail"]


@pytest.mark.django_db
def test_preview_prices_without_reserving_or_spending():
    product = stocked_product(quantity=3)
    CouponFactory(code="WELCOME10")
    card = GiftCardFactory(initial_value=Decimal("10.00"))

    r = APIClient().post(
        "/api/v1/pricing/preview/",
        {
            "postal_code": "01310-100",
            "items": [{"product_id": product.id, "quantity": 1}],
            "coupon_code": "WELCOME10",
            "gift_card_code": card.code,
            "referral_code": "x",
        },
        format="json",
    )

    assert r.status_code == 200
    body = r.json()
    assert [d["source"] for d in body["discounts"]] == ["coupon", "gift_card"]
    assert body["discount"] == "14.99"
    assert body["total"] == "49.91"
    assert [(x["source"], x["reason"]) for x in body["rejections"]] == [("referral", "invalid_format")]
    assert StockItem.objects.get(product=product).reserved == 0
    assert GiftCard.objects.get(id=card.id).balance == Decimal("10.00")
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_preview_unknown_product_is_bad_request():
    r = APIClient().post(
        "/api/v1/pricing/preview/",
        {"postal_code": "01310-100", "items": [{"product_id": 424242, "quantity": 1}]},
        format="json",
    )

    assert r.status_code == 400


# EOF
