from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

GATEWAY_STATUS_CHOICES = [
    (1, "Awaiting payment"),
    (2, "In analysis"),
    (3, "Paid"),
    (4, "Available"),
    (5, "In dispute"),
    (6, "Returned"),
    (7, "Cancelled"),
    (8, "Debited"),
    (9, "Temporary retention"),
]
PAYMENT_STATUS_CHOICES = [("pending", "Pending"), ("paid", "Paid"), ("failed", "Failed"), ("refunded", "Refunded")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("code", models.CharField(blank=True, db_index=True, max_length=64)),
                (
                    "method",
                    models.CharField(
                        choices=[("credit_card", "Credit card"), ("pix", "PIX"), ("boleto", "Boleto")], max_length=16
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                (
                    "gateway_status",
                    models.PositiveSmallIntegerField(blank=True, choices=GATEWAY_STATUS_CHOICES, null=True),
                ),
                (
                    "status",
                    models.CharField(
                        choices=PAYMENT_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("payment_link", models.URLField(blank=True, max_length=500)),
                ("qr_code", models.TextField(blank=True)),
                ("emv", models.TextField(blank=True)),
                ("error_message", models.CharField(blank=True, max_length=500)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_transactions",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["-id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("code", ""), _negated=True), fields=("code",), name="uniq_payment_txn_code"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)), name="payment_txn_amount_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("code", models.CharField(max_length=64, unique=True)),
                ("notification_type", models.CharField(default="transaction", max_length=32)),
                (
                    "gateway_status",
                    models.PositiveSmallIntegerField(blank=True, choices=GATEWAY_STATUS_CHOICES, null=True),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "transaction",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notifications",
                        to="payments.paymenttransaction",
                    ),
                ),
            ],
            options={
                "ordering": ["-id"],
            },
        ),
    ]
