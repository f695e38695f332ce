"""DRF authenticator over the user ``JWTAuthMiddleware`` attached.

DRF loads this while ``rest_framework.views`` is still importing, so it may
only depend on ``rest_framework.authentication``.
"""

from typing import Any, Optional, Tuple

from rest_framework.authentication import BaseAuthentication


class MiddlewareUserAuthentication(BaseAuthentication):
    """Expose the user attached by ``JWTAuthMiddleware`` to DRF.

    No credential parsing happens here; anonymous or missing users simply
    skip authentication.
    """

    def authenticate(self, request) -> Optional[Tuple[Any, None]]:
        django_request = getattr(request, "_request", None)
        if django_request is None:
            return None

        user = getattr(django_request, "user", None)
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return user, None

    def authenticate_header(self, request) -> str:
        return "Bearer"


__all__ = ["MiddlewareUserAuthentication"]
