from decimal import Decimal

from common.choices import OrderStatus, PaymentMethod, PaymentStatus
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Order(TimeStampedModel):
    """Purchase order capturing a snapshot of a checkout.

    Totals are denormalized: they are what the customer was charged, computed
    once at checkout and never recomputed from the live catalog. Orders are
    never deleted; cancellation and refund are statuses.
    """

    STATUS_PENDING = OrderStatus.PENDING
    STATUS_CONFIRMED = OrderStatus.CONFIRMED
    STATUS_PROCESSING = OrderStatus.PROCESSING
    STATUS_SHIPPED = OrderStatus.SHIPPED
    STATUS_DELIVERED = OrderStatus.DELIVERED
    STATUS_CANCELLED = OrderStatus.CANCELLED
    STATUS_REFUNDED = OrderStatus.REFUNDED
    STATUS_CHOICES = OrderStatus.choices

    PAYMENT_PENDING = PaymentStatus.PENDING
    PAYMENT_PAID = PaymentStatus.PAID
    PAYMENT_FAILED = PaymentStatus.FAILED
    PAYMENT_REFUNDED = PaymentStatus.REFUNDED
    PAYMENT_STATUS_CHOICES = PaymentStatus.choices

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, related_name="orders", null=True, blank=True, on_delete=models.SET_NULL
    )
    number = models.CharField(max_length=32, unique=True, null=True, blank=True, db_index=True)
    customer_name = models.CharField(max_length=120)
    email = models.EmailField()
    phone = models.CharField(max_length=32, blank=True)
    postal_code = models.CharField(max_length=8)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=16, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING, db_index=True
    )
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices)

    coupon_code = models.CharField(max_length=40, blank=True)
    referral_code = models.CharField(max_length=32, blank=True)
    gift_card_code = models.CharField(max_length=32, blank=True)
    gift_card_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    loyalty_points_redeemed = models.PositiveIntegerField(default=0)

    tracking_number = models.CharField(max_length=64, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["user", "status", "created_at"], name="order_user_status_idx"),
            models.Index(fields=["status", "payment_status", "created_at"], name="order_status_payment_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="order_total_non_negative", condition=models.Q(total__gte=0)),
            models.CheckConstraint(name="order_discount_non_negative", condition=models.Q(discount__gte=0)),
            models.CheckConstraint(
                name="order_shipped_has_tracking",
                condition=~models.Q(status__in=[OrderStatus.SHIPPED, OrderStatus.DELIVERED])
                | ~models.Q(tracking_number=""),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} {self.number} status={self.status} payment={self.payment_status}"

    @property
    def reservation_reference(self) -> str:
        return f"order:{self.number}"


class OrderItem(TimeStampedModel):
    """Line item within an order.

    Snapshots product info at checkout (title, SKU, unit price, unit weight).
    """

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey("catalog.Product", related_name="order_items", on_delete=models.PROTECT)
    product_title = models.CharField(max_length=200, blank=True)
    sku = models.CharField(max_length=64, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    unit_weight_kg = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["order", "product"], name="orderitem_order_product_idx"),
        ]
        constraints = [
            models.CheckConstraint(name="orderitem_price_non_negative", condition=models.Q(unit_price__gte=0)),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gt=0)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity))


class IdempotencyKey(TimeStampedModel):
    """Stores idempotent request results to prevent duplicate processing."""

    key = models.CharField(max_length=128)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.CASCADE)
    scope = models.CharField(max_length=128)
    path = models.CharField(max_length=255)
    method = models.CharField(max_length=16)
    request_hash = models.CharField(max_length=64, null=True, blank=True)
    response_code = models.IntegerField(null=True, blank=True)
    response_json = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["key", "scope", "path", "method"], name="uniq_idem_scope_path_method"),
        ]


# EOF
