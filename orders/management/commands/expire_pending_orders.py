from django.core.management.base import BaseCommand
from inventory.services import expire_reservations
from orders.services import expire_stale_orders


class Command(BaseCommand):
    help = "Cancel unpaid orders past the reservation window and release any expired stock holds."

    def handle(self, *args, **options):
        orders = expire_stale_orders()
        holds = expire_reservations()
        self.stdout.write(self.style.SUCCESS(f"Expired orders cancelled: {orders}; stray holds released: {holds}"))
