from django.apps import AppConfig


class ClientsConfig(AppConfig):
    """App configuration for the client directory bounded context."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "clients"
    verbose_name = "Clients"
