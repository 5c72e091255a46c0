"""Inventory models (single warehouse, single stock pool).

One stock item per product. ``available`` is always derived from
``quantity - reserved`` and never stored.
"""

from decimal import Decimal

from common.choices import MovementType, ReservationState
from django.db import models


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StockItem(TimeStampedModel):
    product = models.OneToOneField("catalog.Product", on_delete=models.PROTECT, related_name="stock")
    quantity = models.IntegerField(default=0)
    reserved = models.IntegerField(default=0)
    reorder_point = models.IntegerField(default=0)
    reorder_quantity = models.IntegerField(default=0)
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    sell_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    last_restocked = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-updated_at", "id"]
        constraints = [
            models.CheckConstraint(name="stock_non_negative", condition=models.Q(quantity__gte=0)),
            models.CheckConstraint(name="reserved_non_negative", condition=models.Q(reserved__gte=0)),
            models.CheckConstraint(
                name="reserved_le_quantity",
                condition=models.Q(reserved__lte=models.F("quantity")),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"StockItem<{self.product_id}> q={self.quantity} r={self.reserved}"

    @property
    def available(self) -> int:
        return int(self.quantity) - int(self.reserved)


class StockMovement(models.Model):
    """Append-only audit row; never updated or deleted."""

    TYPE_INBOUND = MovementType.INBOUND
    TYPE_OUTBOUND = MovementType.OUTBOUND
    TYPE_ADJUSTMENT = MovementType.ADJUSTMENT
    TYPE_RETURN = MovementType.RETURN
    TYPE_CHOICES = MovementType.choices

    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    quantity = models.IntegerField()  # signed: +in/return, -out, +/- adjustment
    reason = models.CharField(max_length=200, blank=True)
    reference = models.CharField(max_length=120, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(name="movement_non_zero", condition=~models.Q(quantity=0)),
        ]
        indexes = [
            models.Index(fields=["stock_item", "id"], name="movement_item_idx"),
            models.Index(fields=["reference"], name="movement_reference_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.movement_type} {self.quantity} for {self.stock_item_id}"


class StockReservation(TimeStampedModel):
    STATE_ACTIVE = ReservationState.ACTIVE
    STATE_RELEASED = ReservationState.RELEASED
    STATE_COMMITTED = ReservationState.COMMITTED
    STATE_CHOICES = ReservationState.choices

    product = models.ForeignKey("catalog.Product", on_delete=models.PROTECT, related_name="reservations")
    quantity = models.IntegerField()
    reference = models.CharField(max_length=120)
    state = models.CharField(max_length=16, choices=STATE_CHOICES, default=STATE_ACTIVE)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at", "id"]
        constraints = [
            models.CheckConstraint(name="reservation_positive_qty", condition=models.Q(quantity__gt=0)),
        ]
        indexes = [
            models.Index(fields=["product", "state"], name="reservation_product_state_idx"),
            models.Index(fields=["expires_at"], name="reservation_expires_idx"),
            models.Index(fields=["reference"], name="reservation_reference_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Reservation<{self.product_id}> qty={self.quantity} state={self.state}"


# EOF
