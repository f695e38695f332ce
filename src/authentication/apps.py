"""App configuration for identities, profiles and session resolution."""

from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Holds the User and Profile models, token service and profile resolver."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
    verbose_name = "Accounts and profiles"
