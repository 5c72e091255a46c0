import json
from decimal import Decimal

import pytest
from catalog.models import Product
from catalog.selectors import get_product_snapshot
from catalog.tests.factories import ProductFactory
from django.core.management import CommandError, call_command
from inventory.models import StockItem, StockMovement


@pytest.mark.django_db
def test_snapshot_of_active_product():
    product = ProductFactory(price=Decimal("19.90"), weight_kg=Decimal("1.250"))

    snap = get_product_snapshot(product.id)

    assert (snap.sku, snap.price, snap.weight_kg) == (product.sku, Decimal("19.90"), Decimal("1.250"))


@pytest.mark.django_db
def test_snapshot_hides_inactive_and_unknown_products():
    inactive = ProductFactory(status=Product.STATUS_INACTIVE)

    assert get_product_snapshot(inactive.id) is None
    assert get_product_snapshot(999999) is None
    assert get_product_snapshot("not-an-id") is None


@pytest.fixture
def export_file(tmp_path):
    def _write(entries):
        path = tmp_path / "products.json"
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write


@pytest.mark.django_db
def test_import_creates_products_with_opening_stock(export_file):
    path = export_file(
        [
            {"sku": "DOG-FOOD-001", "name": "Ração Premium 15kg", "price": 189.90, "weight": 15000, "stock": 150},
            {"sku": "TOY-001", "name": "Bola de borracha", "price": "12.50"},
        ]
    )

    call_command("import_products", str(path))

    food = Product.objects.get(sku="DOG-FOOD-001")
    assert food.price == Decimal("189.90")
    assert food.weight_kg == Decimal("15.000")
    assert StockItem.objects.get(product=food).quantity == 150
    assert StockMovement.objects.filter(stock_item__product=food, movement_type=StockMovement.TYPE_INBOUND).count() == 1
    toy = Product.objects.get(sku="TOY-001")
    assert toy.weight_kg is None
    assert StockItem.objects.get(product=toy).quantity == 0


@pytest.mark.django_db
def test_reimport_updates_price_but_not_stock(export_file):
    call_command("import_products", str(export_file([{"sku": "A-1", "name": "A", "price": 10, "stock": 5}])))

    call_command("import_products", str(export_file([{"sku": "A-1", "name": "A v2", "price": 12, "stock": 99}])))

    product = Product.objects.get(sku="A-1")
    assert (product.title, product.price) == ("A v2", Decimal("12.00"))
    assert StockItem.objects.get(product=product).quantity == 5


@pytest.mark.django_db
def test_dry_run_writes_nothing(export_file):
    call_command("import_products", str(export_file([{"sku": "A-1", "name": "A", "price": 10}])), "--dry-run")

    assert not Product.objects.exists()


@pytest.mark.django_db
def test_invalid_entry_aborts_import(export_file):
    path = export_file([{"sku": "A-1", "name": "A", "price": 10}, {"sku": "B-1", "price": "abc"}])

    with pytest.raises(CommandError):
        call_command("import_products", str(path))

    assert not Product.objects.exists()
