"""Inventory services: the stock ledger and the reservation manager.

Every counter change and its movement row are written in the same transaction,
so the movement log follows the order in which counters were changed. The
admission gate (``reserve``) and ``commit`` are conditional UPDATEs: the row is
changed only if the guard still holds when the database applies it, which makes
the last unit impossible to hand out twice.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from common.exceptions import AdmissionDenied, ConsistencyViolation
from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import StockItem, StockMovement, StockReservation

logger = logging.getLogger("storefront.inventory")


class MovementError(Exception):
    pass


def _locked_item(product_id: int) -> StockItem:
    try:
        return StockItem.objects.select_for_update().get(product_id=product_id)
    except StockItem.DoesNotExist:
        raise MovementError("StockItem not found")


def _log_movement(
    item: StockItem, *, movement_type: str, quantity: int, reason: str = "", reference: str = "", notes: str = ""
):
    return StockMovement.objects.create(
        stock_item=item,
        movement_type=movement_type,
        quantity=int(quantity),
        reason=reason,
        reference=reference,
        notes=notes or "",
    )


def reservation_expiry(now=None):
    """Return the expiry timestamp for a reservation created at ``now``."""

    ttl = getattr(settings, "RESERVATION_TTL_MINUTES", 30)
    return (now or timezone.now()) + timedelta(minutes=int(ttl))


# Ledger


@transaction.atomic
def open_stock_item(
    *,
    product_id: int,
    quantity: int = 0,
    reorder_point: int = 0,
    reorder_quantity: int = 0,
    cost_price: Decimal = Decimal("0.00"),
    sell_price: Decimal = Decimal("0.00"),
) -> StockItem:
    """Create the stock record for a product.

    An opening quantity is logged as an inbound movement so that the movement
    log alone replays to the current count.
    """
    if quantity < 0:
        raise MovementError("Opening quantity cannot be negative")
    if StockItem.objects.filter(product_id=product_id).exists():
        raise MovementError("StockItem already exists")
    item = StockItem.objects.create(
        product_id=product_id,
        quantity=quantity,
        reserved=0,
        reorder_point=reorder_point,
        reorder_quantity=reorder_quantity,
        cost_price=cost_price,
        sell_price=sell_price,
        last_restocked=timezone.now() if quantity else None,
    )
    if quantity:
        _log_movement(item, movement_type=StockMovement.TYPE_INBOUND, quantity=quantity, reason="Opening balance")
    return item


@transaction.atomic
def restock(*, product_id: int, quantity: int, notes: str = "") -> StockItem:
    if quantity <= 0:
        raise MovementError("Restock quantity must be positive")
    item = _locked_item(product_id)
    item.quantity = int(item.quantity) + int(quantity)
    item.last_restocked = timezone.now()
    item.save(update_fields=["quantity", "last_restocked", "updated_at"])
    _log_movement(item, movement_type=StockMovement.TYPE_INBOUND, quantity=quantity, reason="Restock", notes=notes)
    logger.info(
        "inventory.restocked",
        extra={"event": "inventory.restocked", "product_id": product_id, "quantity": quantity},
    )
    return item


@transaction.atomic
def adjust(*, product_id: int, new_quantity: int, reason: str) -> StockItem:
    """Set the physical count after a stock take.

    Rejects counts below what is currently reserved: shrinking under open
    reservations would make ``available`` negative.
    """
    if new_quantity < 0:
        raise MovementError("Quantity cannot be negative")
    item = _locked_item(product_id)
    if new_quantity < int(item.reserved):
        raise MovementError("Cannot adjust quantity below reserved units")
    delta = int(new_quantity) - int(item.quantity)
    if delta == 0:
        return item
    item.quantity = int(new_quantity)
    item.save(update_fields=["quantity", "updated_at"])
    _log_movement(item, movement_type=StockMovement.TYPE_ADJUSTMENT, quantity=delta, reason=reason)
    logger.info(
        "inventory.adjusted",
        extra={"event": "inventory.adjusted", "product_id": product_id, "delta": delta, "reason": reason},
    )
    return item


@transaction.atomic
def record_return(*, product_id: int, quantity: int, reference: str = "", reason: str = "Customer return") -> StockItem:
    if quantity <= 0:
        raise MovementError("Return quantity must be positive")
    item = _locked_item(product_id)
    item.quantity = int(item.quantity) + int(quantity)
    item.save(update_fields=["quantity", "updated_at"])
    _log_movement(item, movement_type=StockMovement.TYPE_RETURN, quantity=quantity, reason=reason, reference=reference)
    return item


# Counters


@transaction.atomic
def reserve(*, product_id: int, quantity: int) -> bool:
    """Hold ``quantity`` units if that many are available.

    Returns False, with nothing changed, when stock is insufficient.
    """
    if quantity <= 0:
        raise MovementError("Reservation quantity must be positive")
    updated = StockItem.objects.filter(
        product_id=product_id,
        quantity__gte=F("reserved") + quantity,
    ).update(reserved=F("reserved") + quantity, updated_at=timezone.now())
    return updated == 1


@transaction.atomic
def release(*, product_id: int, quantity: int) -> int:
    """Give back up to ``quantity`` held units; returns how many were released."""

    if quantity <= 0:
        return 0
    try:
        item = _locked_item(product_id)
    except MovementError:
        return 0
    released = min(int(quantity), int(item.reserved))
    if released:
        item.reserved = int(item.reserved) - released
        item.save(update_fields=["reserved", "updated_at"])
    return released


@transaction.atomic
def commit(*, product_id: int, quantity: int, reference: str = "", reason: str = "Order fulfilled") -> bool:
    """Turn ``quantity`` held units into a physical deduction.

    Returns False when fewer than ``quantity`` units are held.
    """
    if quantity <= 0:
        raise MovementError("Commit quantity must be positive")
    updated = StockItem.objects.filter(product_id=product_id, reserved__gte=quantity).update(
        quantity=F("quantity") - quantity,
        reserved=F("reserved") - quantity,
        updated_at=timezone.now(),
    )
    if updated != 1:
        return False
    item = StockItem.objects.get(product_id=product_id)
    _log_movement(
        item,
        movement_type=StockMovement.TYPE_OUTBOUND,
        quantity=-int(quantity),
        reason=reason,
        reference=reference,
    )
    return True


# Reservation tickets


@transaction.atomic
def create_reservation(*, product_id: int, quantity: int, reference: str, expires_at=None) -> StockReservation:
    if quantity <= 0:
        raise MovementError("Reservation quantity must be positive")
    if not reserve(product_id=product_id, quantity=quantity):
        # Stale holds may be blocking the last units; expire them and retry once
        if not expire_reservations(product_id=product_id) or not reserve(product_id=product_id, quantity=quantity):
            logger.info(
                "inventory.admission_denied",
                extra={
                    "event": "inventory.admission_denied",
                    "product_id": product_id,
                    "quantity": quantity,
                    "reference": reference,
                },
            )
            raise AdmissionDenied(f"Insufficient available quantity for product {product_id}")
    return StockReservation.objects.create(
        product_id=product_id,
        quantity=quantity,
        reference=reference,
        expires_at=expires_at,
        state=StockReservation.STATE_ACTIVE,
    )


@transaction.atomic
def release_reservation(*, reservation_id: int) -> bool:
    """Release an active reservation. Returns False if there was nothing to release."""

    try:
        res = StockReservation.objects.select_for_update().get(id=reservation_id)
    except StockReservation.DoesNotExist:
        return False
    if res.state != StockReservation.STATE_ACTIVE:
        return False
    release(product_id=res.product_id, quantity=res.quantity)
    res.state = StockReservation.STATE_RELEASED
    res.save(update_fields=["state", "updated_at"])
    return True


@transaction.atomic
def commit_reservation(
    *, reservation_id: int, reference: str = "", reason: str = "Order fulfilled"
) -> StockReservation:
    """Commit an active reservation into an outbound movement.

    Committing a reservation that was released (timeout, cancellation) means a
    payment arrived for stock we no longer hold: that is a ConsistencyViolation.
    """
    try:
        res = StockReservation.objects.select_for_update().get(id=reservation_id)
    except StockReservation.DoesNotExist:
        raise ConsistencyViolation(f"Reservation {reservation_id} not found")
    if res.state == StockReservation.STATE_COMMITTED:
        return res
    if res.state != StockReservation.STATE_ACTIVE:
        raise ConsistencyViolation(f"Reservation {res.id} is {res.state}")
    committed = commit(
        product_id=res.product_id, quantity=res.quantity, reference=reference or res.reference, reason=reason
    )
    if not committed:
        raise ConsistencyViolation(f"Reserved stock missing for reservation {res.id}")
    res.state = StockReservation.STATE_COMMITTED
    res.save(update_fields=["state", "updated_at"])
    return res


def reservations_for(reference: str):
    return StockReservation.objects.filter(reference=reference).order_by("id")


def active_reservations_for(reference: str):
    return reservations_for(reference).filter(state=StockReservation.STATE_ACTIVE)


def release_reservations_for(*, reference: str) -> int:
    count = 0
    with transaction.atomic():
        for res_id in list(active_reservations_for(reference).values_list("id", flat=True)):
            if release_reservation(reservation_id=res_id):
                count += 1
    return count


def extend_reservations_for(*, reference: str, expires_at) -> int:
    """Push the expiry of a reference's active reservations out to ``expires_at``.

    Only extends: a reservation that already outlives ``expires_at`` (or never
    expires) is left alone. Returns how many reservations moved.
    """
    extended = (
        active_reservations_for(reference)
        .filter(expires_at__lt=expires_at)
        .update(expires_at=expires_at, updated_at=timezone.now())
    )
    if extended:
        logger.info(
            "inventory.reservations_extended",
            extra={
                "event": "inventory.reservations_extended",
                "reference": reference,
                "count": extended,
                "expires_at": expires_at.isoformat(),
            },
        )
    return extended


def expire_reservations(*, now=None, product_id: int | None = None) -> int:
    """Release active reservations whose ``expires_at`` has passed."""

    now = now or timezone.now()
    qs = StockReservation.objects.filter(state=StockReservation.STATE_ACTIVE, expires_at__lt=now)
    if product_id is not None:
        qs = qs.filter(product_id=product_id)
    count = 0
    for res_id in list(qs.values_list("id", flat=True)):
        if release_reservation(reservation_id=res_id):
            count += 1
    if count:
        logger.info(
            "inventory.reservations_expired",
            extra={"event": "inventory.reservations_expired", "count": count, "product_id": product_id},
        )
    return count


# EOF
