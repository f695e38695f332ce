"""App configuration for the shared project plumbing."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Core app holds settings, URL routing, middleware and the response envelope."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Newsroom core"
