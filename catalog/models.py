"""Catalog app models.

The storefront catalog is owned elsewhere; this app keeps only what the
settlement core reads at checkout: a sellable product with its current price
and shipping weight.
"""

from common.choices import ActiveInactive
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Product(TimeStampedModel):
    """Sellable product as seen by checkout."""

    STATUS_ACTIVE = ActiveInactive.ACTIVE
    STATUS_INACTIVE = ActiveInactive.INACTIVE
    STATUS_CHOICES = ActiveInactive.choices

    sku = models.CharField(max_length=64, unique=True)
    title = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    weight_kg = models.DecimalField(max_digits=8, decimal_places=3, null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    class Meta:
        ordering = ["sku"]
        constraints = [
            models.CheckConstraint(name="product_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(
                name="product_weight_non_negative",
                condition=models.Q(weight_kg__gte=0) | models.Q(weight_kg__isnull=True),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.sku} {self.title}"
