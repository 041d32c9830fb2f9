"""Django app configuration for the users app."""

from django.apps import AppConfig


class UsersConfig(AppConfig):
    """Local user identities backing API authentication."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "users"
