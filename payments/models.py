from decimal import Decimal

from common.choices import GatewayStatus, PaymentMethod, PaymentStatus
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class PaymentTransaction(TimeStampedModel):
    """One charge attempt at the payment processor for an order.

    ``code`` is the processor's transaction code; it is blank for attempts that
    failed before the processor assigned one.
    """

    STATUS_CHOICES = PaymentStatus.choices
    TERMINAL_STATUSES = (PaymentStatus.FAILED, PaymentStatus.REFUNDED)

    order = models.ForeignKey("orders.Order", related_name="payment_transactions", on_delete=models.PROTECT)
    code = models.CharField(max_length=64, blank=True, db_index=True)
    method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    gateway_status = models.PositiveSmallIntegerField(choices=GatewayStatus.choices, null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PaymentStatus.PENDING, db_index=True)
    payment_link = models.URLField(max_length=500, blank=True)
    qr_code = models.TextField(blank=True)
    emv = models.TextField(blank=True)
    error_message = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-id"]
        constraints = [
            models.UniqueConstraint(fields=["code"], condition=~models.Q(code=""), name="uniq_payment_txn_code"),
            models.CheckConstraint(name="payment_txn_amount_non_negative", condition=models.Q(amount__gte=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"PaymentTransaction#{self.id} order={self.order_id} code={self.code} status={self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES


class GatewayNotification(TimeStampedModel):
    """Inbound processor notification, kept so a replay is handled once."""

    code = models.CharField(max_length=64, unique=True)
    notification_type = models.CharField(max_length=32, default="transaction")
    transaction = models.ForeignKey(
        PaymentTransaction, related_name="notifications", null=True, blank=True, on_delete=models.SET_NULL
    )
    gateway_status = models.PositiveSmallIntegerField(choices=GatewayStatus.choices, null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"GatewayNotification {self.code} processed={bool(self.processed_at)}"
