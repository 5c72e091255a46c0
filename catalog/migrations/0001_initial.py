from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("sku", models.CharField(max_length=64, unique=True)),
                ("title", models.CharField(max_length=200)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("weight_kg", models.DecimalField(blank=True, decimal_places=3, max_digits=8, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("inactive", "Inactive")],
                        db_index=True,
                        default="active",
                        max_length=16,
                    ),
                ),
            ],
            options={
                "ordering": ["sku"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("price__gte", 0)), name="product_price_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(("weight_kg__gte", 0), ("weight_kg__isnull", True), _connector="OR"),
                        name="product_weight_non_negative",
                    ),
                ],
            },
        ),
    ]
