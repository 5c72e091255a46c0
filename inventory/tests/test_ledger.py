from decimal import Decimal

import pytest
from catalog.tests.factories import ProductFactory
from django.core.management import CommandError, call_command
from django.db import IntegrityError, transaction
from inventory.models import StockItem, StockMovement
from inventory.selectors import get_stock_item, low_stock_alerts, reconcile_stock_item, stock_valuation
from inventory.services import (
    MovementError,
    adjust,
    create_reservation,
    open_stock_item,
    record_return,
    restock,
)
from inventory.tests.factories import StockItemFactory


@pytest.mark.django_db
def test_open_stock_item_logs_opening_balance():
    product = ProductFactory()
    item = open_stock_item(product_id=product.id, quantity=12)

    assert item.quantity == 12
    assert item.last_restocked is not None
    movement = item.movements.get()
    assert movement.movement_type == StockMovement.TYPE_INBOUND
    assert movement.quantity == 12

    with pytest.raises(MovementError):
        open_stock_item(product_id=product.id, quantity=1)


@pytest.mark.django_db
def test_get_stock_item_missing_returns_none():
    product = ProductFactory()
    assert get_stock_item(product.id) is None
    StockItemFactory(product=product)
    assert get_stock_item(product.id).product_id == product.id


@pytest.mark.django_db
def test_restock_adds_quantity_and_movement():
    item = StockItemFactory(quantity=5)

    restock(product_id=item.product_id, quantity=7, notes="supplier delivery")

    item.refresh_from_db()
    assert item.quantity == 12
    assert item.last_restocked is not None
    movement = item.movements.get()
    assert movement.movement_type == StockMovement.TYPE_INBOUND
    assert movement.quantity == 7
    assert movement.notes == "supplier delivery"

    with pytest.raises(MovementError):
        restock(product_id=item.product_id, quantity=0)


@pytest.mark.django_db
def test_restock_unknown_product_raises():
    product = ProductFactory()
    with pytest.raises(MovementError):
        restock(product_id=product.id, quantity=3)


@pytest.mark.django_db
def test_adjust_logs_signed_delta():
    item = StockItemFactory(quantity=10)

    adjust(product_id=item.product_id, new_quantity=7, reason="Stock take")
    adjust(product_id=item.product_id, new_quantity=9, reason="Found in back room")

    item.refresh_from_db()
    assert item.quantity == 9
    deltas = list(item.movements.order_by("id").values_list("movement_type", "quantity"))
    assert deltas == [
        (StockMovement.TYPE_ADJUSTMENT, -3),
        (StockMovement.TYPE_ADJUSTMENT, 2),
    ]


@pytest.mark.django_db
def test_adjust_to_same_quantity_logs_nothing():
    item = StockItemFactory(quantity=4)
    adjust(product_id=item.product_id, new_quantity=4, reason="Recount")
    assert not item.movements.exists()


@pytest.mark.django_db
def test_adjust_below_reserved_is_rejected():
    item = StockItemFactory(quantity=10)
    create_reservation(product_id=item.product_id, quantity=6, reference="order:ORD-000001")

    with pytest.raises(MovementError):
        adjust(product_id=item.product_id, new_quantity=5, reason="Damaged")
    with pytest.raises(MovementError):
        adjust(product_id=item.product_id, new_quantity=-1, reason="Typo")

    item.refresh_from_db()
    assert item.quantity == 10
    assert item.reserved == 6
    assert item.available == 4


@pytest.mark.django_db
def test_record_return_puts_units_back():
    item = StockItemFactory(quantity=2)
    record_return(product_id=item.product_id, quantity=1, reference="order:ORD-000009")

    item.refresh_from_db()
    assert item.quantity == 3
    movement = item.movements.get()
    assert movement.movement_type == StockMovement.TYPE_RETURN
    assert movement.reference == "order:ORD-000009"


@pytest.mark.django_db
def test_movement_log_replays_to_quantity():
    product = ProductFactory()
    open_stock_item(product_id=product.id, quantity=10)
    restock(product_id=product.id, quantity=5)
    adjust(product_id=product.id, new_quantity=13, reason="Shrinkage")
    record_return(product_id=product.id, quantity=1)

    report = reconcile_stock_item(product.id)
    assert report == {"product_id": product.id, "expected": 14, "actual": 14, "consistent": True}

    call_command("reconcile_stock")


@pytest.mark.django_db
def test_reconcile_command_fails_on_mismatch():
    # Created directly, so no movement backs its quantity
    StockItemFactory(quantity=3)
    with pytest.raises(CommandError):
        call_command("reconcile_stock")


@pytest.mark.django_db
def test_low_stock_alerts_orders_by_urgency():
    out = StockItemFactory(quantity=0, reorder_point=10)
    critical = StockItemFactory(quantity=4, reorder_point=10)
    low = StockItemFactory(quantity=8, reorder_point=10)
    StockItemFactory(quantity=50, reorder_point=10)

    alerts = low_stock_alerts()

    assert [a["product_id"] for a in alerts] == [out.product_id, critical.product_id, low.product_id]
    assert [a["status"] for a in alerts] == ["out", "critical", "low"]
    assert alerts[2]["days_until_stockout"] == 4


@pytest.mark.django_db
def test_stock_valuation_totals():
    StockItemFactory(quantity=2, cost_price=Decimal("10.00"), sell_price=Decimal("25.00"))
    StockItemFactory(quantity=3, cost_price=Decimal("5.00"), sell_price=Decimal("9.90"))

    totals = stock_valuation()

    assert totals["total_cost"] == Decimal("35.00")
    assert totals["total_retail"] == Decimal("79.70")
    assert totals["potential_profit"] == Decimal("44.70")


@pytest.mark.django_db
def test_stock_item_counts_are_constrained():
    item = StockItemFactory(quantity=2)
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            StockItem.objects.filter(id=item.id).update(reserved=3)


# EOF
