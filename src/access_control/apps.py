"""App configuration for the access_control Django application.

The app holds the role hierarchy and the permission gate; it has no models.
Loading it registers the role-gating system checks.
"""

from django.apps import AppConfig


class AccessControlConfig(AppConfig):
    """Application configuration for the access_control app."""

    name = "access_control"
    verbose_name = "Editorial access control"

    def ready(self) -> None:
        """Register system checks when the app is loaded."""
        from . import checks  # noqa: F401
