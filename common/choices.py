"""Shared enumerations and choices used across apps."""

from django.db import models


class ActiveInactive(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class MovementType(models.TextChoices):
    INBOUND = "in", "Inbound"
    OUTBOUND = "out", "Outbound"
    ADJUSTMENT = "adjustment", "Adjustment"
    RETURN = "return", "Return"


class ReservationState(models.TextChoices):
    ACTIVE = "active", "Active"
    RELEASED = "released", "Released"
    COMMITTED = "committed", "Committed"


class OrderStatus(models.TextChoices):
    """Fulfillment lifecycle for orders."""

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    """Payment lifecycle for orders."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class PaymentMethod(models.TextChoices):
    CREDIT_CARD = "credit_card", "Credit card"
    PIX = "pix", "PIX"
    BOLETO = "boleto", "Boleto"


class DiscountKind(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage"
    FIXED = "fixed", "Fixed amount"


class GatewayStatus(models.IntegerChoices):
    """Transaction status codes reported by the payment processor."""

    AWAITING_PAYMENT = 1, "Awaiting payment"
    IN_ANALYSIS = 2, "In analysis"
    PAID = 3, "Paid"
    AVAILABLE = 4, "Available"
    IN_DISPUTE = 5, "In dispute"
    RETURNED = 6, "Returned"
    CANCELLED = 7, "Cancelled"
    DEBITED = 8, "Debited"
    TEMPORARY_RETENTION = 9, "Temporary retention"
