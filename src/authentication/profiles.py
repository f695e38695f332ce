"""Profile snapshots, the profile-store interface and fallback profile synthesis.

A :class:`ResolvedProfile` is the immutable in-memory view of a user's
editorial identity. It is either read from the profile store or, when the
store cannot provide one, synthesized from the user's email address. A
synthesized profile lives only as long as the session that produced it and is
never written back.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from asgiref.sync import sync_to_async
from django.conf import settings
from django.db import DatabaseError, connections
from django.utils import timezone

from access_control.roles import Role

logger = logging.getLogger(__name__)

UPDATABLE_PROFILE_FIELDS = ("full_name", "bio", "avatar_url", "phone", "address")

# Own pool: the event loop's default executor is joined when ``async_to_sync`` returns.
_profile_read_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="profile-read")


class ProfileStoreError(Exception):
    """Raised when the profile store cannot answer a request."""


class AccessPolicyError(ProfileStoreError):
    """Raised when the store's own access rules contradict each other (e.g. a policy cycle)."""


@dataclass(frozen=True)
class ResolvedProfile:
    """Editorial identity used for authorization within a session."""

    id: str
    user_id: str
    full_name: str
    role: str
    is_active: bool = True
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    bio: str = ""
    avatar_url: str = ""
    phone: str = ""
    address: str = ""
    is_fallback: bool = field(default=False, compare=False)

    @classmethod
    def from_model(cls, profile) -> "ResolvedProfile":
        return cls(
            id=str(profile.id),
            user_id=str(profile.user_id),
            full_name=profile.full_name,
            role=profile.role,
            is_active=profile.is_active,
            email_verified=profile.email_verified,
            last_login_at=profile.last_login_at,
            bio=profile.bio,
            avatar_url=profile.avatar_url,
            phone=profile.phone,
            address=profile.address,
        )

    def with_updates(self, **fields: Any) -> "ResolvedProfile":
        return replace(self, **fields)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FallbackPolicy:
    """Email heuristics used to infer a role when no stored profile is available.

    ``role_emails`` maps exact addresses to roles; any other address in
    ``organization_domain`` is a contributor and everything else a subscriber.
    With ``require_verified_email`` set, unverified identities never receive
    more than the subscriber role.
    """

    role_emails: Mapping[str, str]
    organization_domain: str
    require_verified_email: bool = False

    @classmethod
    def from_settings(cls) -> "FallbackPolicy":
        return cls(
            role_emails={k.lower(): v for k, v in settings.FALLBACK_ROLE_EMAILS.items()},
            organization_domain=settings.NEWSROOM_EMAIL_DOMAIN.lower(),
            require_verified_email=settings.FALLBACK_REQUIRE_VERIFIED_EMAIL,
        )

    def role_for(self, email: str, email_verified: bool = False) -> str:
        email = (email or "").strip().lower()
        if self.require_verified_email and not email_verified:
            return Role.SUBSCRIBER.value
        if email in self.role_emails:
            return self.role_emails[email]
        _, _, domain = email.rpartition("@")
        if domain and domain == self.organization_domain:
            return Role.CONTRIBUTOR.value
        return Role.SUBSCRIBER.value


def synthesize_fallback_profile(
    user_id: Any,
    email: str,
    email_verified: bool = False,
    policy: Optional[FallbackPolicy] = None,
    now: Optional[datetime] = None,
) -> ResolvedProfile:
    """Derive a session-only profile from the authentication identity."""

    policy = policy or FallbackPolicy.from_settings()
    role = policy.role_for(email, email_verified=email_verified)
    local_part = (email or "").split("@")[0]
    profile = ResolvedProfile(
        id=f"fallback-{user_id}",
        user_id=str(user_id),
        full_name=local_part or "User",
        role=role,
        is_active=True,
        email_verified=True,
        last_login_at=now or timezone.now(),
        is_fallback=True,
    )
    logger.info("Fallback profile synthesized for %s with role %s", email, role)
    return profile


class ProfileStore(Protocol):
    """Where persisted profiles live. All methods raise ProfileStoreError on failure."""

    async def get_profile(self, user_id: str) -> Optional[ResolvedProfile]:
        ...

    async def update_profile(self, user_id: str, fields: Mapping[str, Any]) -> ResolvedProfile:
        ...

    async def insert_profile(self, user_id: str, full_name: str, role: str) -> ResolvedProfile:
        ...


class DjangoProfileStore:
    """Profile store backed by the ``Profile`` model.

    With ``isolated`` set, profile reads run on a worker thread with their
    own database connection, so a caller that stops waiting (the resolver
    timeout) is not held until the query returns. Such reads cannot see
    uncommitted writes of the calling thread.
    """

    def __init__(self, isolated: bool = False):
        self.isolated = isolated

    async def get_profile(self, user_id: str) -> Optional[ResolvedProfile]:
        if self.isolated:
            return await sync_to_async(
                self._get_profile_in_worker, thread_sensitive=False, executor=_profile_read_executor
            )(user_id)
        return await sync_to_async(self._get_profile)(user_id)

    async def update_profile(self, user_id: str, fields: Mapping[str, Any]) -> ResolvedProfile:
        return await sync_to_async(self._update_profile)(user_id, dict(fields))

    async def insert_profile(self, user_id: str, full_name: str, role: str) -> ResolvedProfile:
        return await sync_to_async(self._insert_profile)(user_id, full_name, role)

    @classmethod
    def _get_profile_in_worker(cls, user_id):
        try:
            return cls._get_profile(user_id)
        finally:
            # Worker threads are pooled; do not leave their connections open.
            connections.close_all()

    @staticmethod
    def _get_profile(user_id):
        from .models import Profile

        try:
            profile = Profile.objects.filter(user_id=user_id).first()
        except DatabaseError as exc:
            raise ProfileStoreError(str(exc)) from exc
        return ResolvedProfile.from_model(profile) if profile else None

    @staticmethod
    def _update_profile(user_id, fields):
        from .models import Profile

        unknown = set(fields) - set(UPDATABLE_PROFILE_FIELDS)
        if unknown:
            raise ProfileStoreError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        try:
            profile = Profile.objects.filter(user_id=user_id).first()
            if profile is None:
                raise ProfileStoreError("Profile not found")
            for name, value in fields.items():
                setattr(profile, name, value)
            profile.save(update_fields=[*fields, "updated_at"])
        except DatabaseError as exc:
            raise ProfileStoreError(str(exc)) from exc
        return ResolvedProfile.from_model(profile)

    @staticmethod
    def _insert_profile(user_id, full_name, role):
        from .models import Profile

        try:
            profile = Profile.objects.create(user_id=user_id, full_name=full_name, role=role)
        except DatabaseError as exc:
            raise ProfileStoreError(str(exc)) from exc
        return ResolvedProfile.from_model(profile)


__all__ = [
    "ResolvedProfile",
    "FallbackPolicy",
    "ProfileStore",
    "DjangoProfileStore",
    "ProfileStoreError",
    "AccessPolicyError",
    "synthesize_fallback_profile",
    "UPDATABLE_PROFILE_FIELDS",
]
