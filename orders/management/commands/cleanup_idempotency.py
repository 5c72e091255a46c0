import logging

from django.core.management.base import BaseCommand
from django.utils import timezone
from orders.models import IdempotencyKey

logger = logging.getLogger("storefront.orders")


class Command(BaseCommand):
    help = "Delete idempotency records whose replay window (expires_at) has passed."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only report how many records would go.")

    def handle(self, *args, **options):
        stale = IdempotencyKey.objects.filter(expires_at__lt=timezone.now())
        count = stale.count()
        if options["dry_run"]:
            self.stdout.write(f"{count} idempotency records past their replay window.")
            return
        stale.delete()
        logger.info("orders.idempotency_cleaned", extra={"event": "orders.idempotency_cleaned", "count": count})
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} expired idempotency records."))
