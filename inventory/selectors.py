"""Selectors for inventory domain (single warehouse)."""

from decimal import Decimal
from typing import Optional

from django.db.models import Sum

from .models import StockItem


def get_stock_item(product_id: int) -> Optional[StockItem]:
    """Return the stock record for a product, or None if the product has none."""

    try:
        return StockItem.objects.get(product_id=product_id)
    except StockItem.DoesNotExist:
        return None


def reconcile_stock_item(product_id: int) -> dict:
    """Replay the movement log for one product and compare with the counter."""

    item = StockItem.objects.get(product_id=product_id)
    expected = item.movements.aggregate(total=Sum("quantity"))["total"] or 0
    return {
        "product_id": product_id,
        "expected": int(expected),
        "actual": int(item.quantity),
        "consistent": int(expected) == int(item.quantity),
    }


def low_stock_alerts(*, avg_daily_sales: int = 2) -> list[dict]:
    """Items at or under their reorder point, most urgent first.

    status: ``out`` (nothing available), ``critical`` (under half the reorder
    point) or ``low``.
    """
    order = {"out": 0, "critical": 1, "low": 2}
    alerts = []
    for item in StockItem.objects.select_related("product"):
        available = item.available
        if available > item.reorder_point:
            continue
        if available <= 0:
            status = "out"
        elif available < item.reorder_point / 2:
            status = "critical"
        else:
            status = "low"
        alerts.append(
            {
                "product_id": item.product_id,
                "sku": item.product.sku,
                "title": item.product.title,
                "available": available,
                "reorder_point": item.reorder_point,
                "status": status,
                "days_until_stockout": max(available, 0) // max(int(avg_daily_sales), 1),
            }
        )
    return sorted(alerts, key=lambda a: (order[a["status"]], a["available"]))


def stock_valuation() -> dict:
    total_cost = Decimal("0.00")
    total_retail = Decimal("0.00")
    for item in StockItem.objects.only("quantity", "cost_price", "sell_price"):
        total_cost += item.cost_price * item.quantity
        total_retail += item.sell_price * item.quantity
    return {
        "total_cost": total_cost,
        "total_retail": total_retail,
        "potential_profit": total_retail - total_cost,
    }


# EOF
