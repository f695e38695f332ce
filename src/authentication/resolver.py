"""Resolve the editorial profile for an authenticated identity.

The profile store is asked first. When it has no record, fails, or does not
answer within ``PROFILE_FETCH_TIMEOUT`` seconds, a fallback profile is
synthesized instead, so an authenticated user always ends up with a role.
"""

import asyncio
import logging
from typing import Optional

from asgiref.sync import async_to_sync
from django.conf import settings
from django.db import transaction

from .events import AuthIdentity
from .profiles import (
    AccessPolicyError,
    DjangoProfileStore,
    FallbackPolicy,
    ProfileStore,
    ProfileStoreError,
    ResolvedProfile,
    synthesize_fallback_profile,
)

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_FETCH_TIMEOUT = 10.0


class ProfileResolver:
    """Turn an :class:`AuthIdentity` into a :class:`ResolvedProfile`; never raises for store failures."""

    def __init__(
        self,
        store: ProfileStore,
        timeout: Optional[float] = None,
        policy: Optional[FallbackPolicy] = None,
    ):
        self.store = store
        if timeout is None:
            timeout = getattr(settings, "PROFILE_FETCH_TIMEOUT", DEFAULT_PROFILE_FETCH_TIMEOUT)
        self.timeout = timeout
        self._policy = policy

    @property
    def policy(self) -> FallbackPolicy:
        if self._policy is None:
            self._policy = FallbackPolicy.from_settings()
        return self._policy

    async def resolve(self, identity: AuthIdentity) -> ResolvedProfile:
        try:
            profile = await asyncio.wait_for(self.store.get_profile(identity.id), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Profile fetch for %s timed out after %ss; using fallback profile",
                identity.id,
                self.timeout,
            )
            return self.fallback(identity)
        except AccessPolicyError as exc:
            logger.warning("Profile store policy error for %s: %s; using fallback profile", identity.id, exc)
            return self.fallback(identity)
        except ProfileStoreError as exc:
            logger.warning("Profile store error for %s: %s; using fallback profile", identity.id, exc)
            return self.fallback(identity)
        except Exception:
            logger.exception("Unexpected error fetching profile for %s; using fallback profile", identity.id)
            return self.fallback(identity)

        if profile is None:
            logger.warning("No profile stored for %s; using fallback profile", identity.id)
            return self.fallback(identity)
        return profile

    def fallback(self, identity: AuthIdentity) -> ResolvedProfile:
        return synthesize_fallback_profile(
            identity.id,
            identity.email,
            email_verified=identity.email_verified,
            policy=self.policy,
        )


def default_resolver(isolated: bool = False) -> ProfileResolver:
    """Resolver over the database-backed profile store, configured from settings."""

    return ProfileResolver(DjangoProfileStore(isolated=isolated))


def resolve_profile_for_user(user) -> Optional[ResolvedProfile]:
    """Synchronously resolve the profile of a Django user; None for anonymous users."""

    if user is None or not getattr(user, "is_authenticated", False):
        return None
    # Inside an open transaction the read must share its connection to see its writes.
    isolated = not transaction.get_connection().in_atomic_block
    return async_to_sync(default_resolver(isolated=isolated).resolve)(AuthIdentity.from_user(user))


def get_request_profile(request) -> Optional[ResolvedProfile]:
    """Resolve the caller's profile once per request and cache it on the request."""

    django_request = getattr(request, "_request", request)
    if not hasattr(django_request, "_resolved_profile"):
        django_request._resolved_profile = resolve_profile_for_user(getattr(request, "user", None))
    return django_request._resolved_profile


__all__ = [
    "ProfileResolver",
    "DEFAULT_PROFILE_FETCH_TIMEOUT",
    "default_resolver",
    "resolve_profile_for_user",
    "get_request_profile",
]
