"""Import sellable products from a JSON export.

The file holds a list of objects with ``sku``, ``name``, ``price``, and
optionally ``weight`` (grams) and ``stock``. Products are matched by SKU, so
re-running updates price, title and weight in place. Stock is only opened for
products that have no stock record yet; later counts go through restock or
adjust so the movement log stays complete.
"""

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path

from catalog.models import Product
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from inventory.models import StockItem
from inventory.services import open_stock_item

GRAMS_PER_KG = Decimal("1000")


def _product_fields(entry: dict) -> dict:
    try:
        price = Decimal(str(entry["price"]))
        weight = entry.get("weight")
        return {
            "title": str(entry["name"])[:200],
            "price": price,
            "weight_kg": (Decimal(str(weight)) / GRAMS_PER_KG).quantize(Decimal("0.001")) if weight else None,
        }
    except (KeyError, InvalidOperation) as exc:
        raise CommandError(f"Invalid product entry {entry.get('sku')!r}: {exc}")


class Command(BaseCommand):
    help = "Create or update products (and opening stock) from a JSON file"

    def add_arguments(self, parser):
        parser.add_argument("path", type=Path)
        parser.add_argument("--dry-run", action="store_true", help="Validate the file without writing")

    def handle(self, *args, path: Path, dry_run: bool = False, **options):
        try:
            entries = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CommandError(f"Cannot read {path}: {exc}")
        if not isinstance(entries, list):
            raise CommandError("Expected a JSON list of products")

        rows = []
        for entry in entries:
            sku = str(entry.get("sku") or "").strip()
            if not sku:
                raise CommandError("Every product needs a sku")
            rows.append((sku, _product_fields(entry), int(entry.get("stock") or 0)))

        if dry_run:
            self.stdout.write(f"{len(rows)} products are valid")
            return

        created = updated = 0
        with transaction.atomic():
            for sku, fields, stock in rows:
                product, was_created = Product.objects.update_or_create(sku=sku, defaults=fields)
                created += was_created
                updated += not was_created
                if not StockItem.objects.filter(product=product).exists():
                    open_stock_item(product_id=product.id, quantity=stock, sell_price=fields["price"])

        self.stdout.write(self.style.SUCCESS(f"Products created: {created}, updated: {updated}"))
