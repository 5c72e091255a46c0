"""Read-only catalog lookups used by checkout.

Prices and weights are captured onto order lines at checkout time, so callers
must not re-read them later for an existing order.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .models import Product


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    sku: str
    title: str
    price: Decimal
    weight_kg: Optional[Decimal]


def get_product_snapshot(product_id: int) -> Optional[ProductSnapshot]:
    """Return current price/weight for an active product, or None if not found."""

    try:
        product = Product.objects.only("id", "sku", "title", "price", "weight_kg").get(
            id=product_id, status=Product.STATUS_ACTIVE
        )
    except (Product.DoesNotExist, ValueError, TypeError):
        return None
    return ProductSnapshot(
        id=product.id,
        sku=product.sku,
        title=product.title,
        price=product.price,
        weight_kg=product.weight_kg,
    )
