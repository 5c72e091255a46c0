"""Django app configuration for catalog."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Read-only product data consumed by checkout."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
