"""Django app configuration for catalog."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Supplier product catalog (prices read by the replenishment engine)."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
