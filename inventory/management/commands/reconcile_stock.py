from django.core.management.base import BaseCommand, CommandError
from inventory.models import StockItem
from inventory.selectors import reconcile_stock_item


class Command(BaseCommand):
    help = "Replay the movement log for every stock item and report counters that disagree with it."

    def handle(self, *args, **options):
        mismatches = []
        for product_id in StockItem.objects.order_by("product_id").values_list("product_id", flat=True):
            report = reconcile_stock_item(product_id)
            if not report["consistent"]:
                mismatches.append(report)
                self.stderr.write(
                    f"product={report['product_id']} expected={report['expected']} actual={report['actual']}"
                )
        if mismatches:
            raise CommandError(f"{len(mismatches)} stock items disagree with their movement log")
        self.stdout.write(self.style.SUCCESS("All stock items match their movement log."))
