from decimal import Decimal

import factory
from catalog.tests.factories import ProductFactory
from common.choices import PaymentMethod
from factory.django import DjangoModelFactory
from inventory.services import open_stock_item
from orders.models import Order


class OrderFactory(DjangoModelFactory):
    """Bare order row for listing and filtering; checkout paths use place_order."""

    class Meta:
        model = Order

    number = factory.Sequence(lambda n: f"ORD-9{n:05d}")
    customer_name = factory.Faker("name")
    email = factory.Faker("email")
    postal_code = "01310100"
    payment_method = PaymentMethod.PIX
    subtotal = Decimal("49.90")
    shipping_cost = Decimal("15.00")
    total = Decimal("64.90")


def stocked_product(quantity: int = 10, **product_fields):
    """Active product with a stock record opened through the ledger."""

    product = ProductFactory(**product_fields)
    open_stock_item(product_id=product.id, quantity=quantity)
    return product


def checkout_payload(*lines, **overrides) -> dict:
    data = {
        "customer_name": "Ana Souza",
        "email": "ana@example.com",
        "postal_code": "01310-100",
        "payment_method": PaymentMethod.PIX,
        "items": [{"product_id": product.id, "quantity": quantity} for product, quantity in lines],
    }
    data.update(overrides)
    return data
