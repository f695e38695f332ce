"""Profile resolution: store hits, misses, failures, timeouts and fallback roles."""

from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace
from unittest import mock

from django.test import SimpleTestCase, override_settings

from access_control.roles import Role
from authentication.events import AuthIdentity
from authentication.profiles import (
    AccessPolicyError,
    DjangoProfileStore,
    FallbackPolicy,
    ProfileStoreError,
    ResolvedProfile,
    synthesize_fallback_profile,
)
from authentication.resolver import DEFAULT_PROFILE_FETCH_TIMEOUT, ProfileResolver, resolve_profile_for_user

USER_ID = "55555555-5555-5555-5555-555555555555"

POLICY = FallbackPolicy(
    role_emails={
        "admin@opiniku.id": Role.SUPER_ADMIN.value,
        "editor@opiniku.id": Role.EDITOR.value,
        "journalist@opiniku.id": Role.JOURNALIST.value,
    },
    organization_domain="opiniku.id",
)


class StubStore:
    """Profile store returning a fixed profile or raising a fixed error."""

    def __init__(self, profile=None, error=None, delay=0.0):
        self.profile = profile
        self.error = error
        self.delay = delay
        self.calls = 0
        self.writes = 0

    async def get_profile(self, user_id):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.profile

    async def update_profile(self, user_id, fields):
        self.writes += 1
        raise ProfileStoreError("read-only")

    async def insert_profile(self, user_id, full_name, role):
        self.writes += 1
        raise ProfileStoreError("read-only")


def stored_profile(role=Role.JOURNALIST):
    return ResolvedProfile(id="stored-1", user_id=USER_ID, full_name="Rina", role=role)


class FallbackPolicyTests(SimpleTestCase):
    def test_exact_addresses_map_to_roles(self):
        self.assertEqual(POLICY.role_for("admin@opiniku.id"), "super_admin")
        self.assertEqual(POLICY.role_for("Editor@Opiniku.ID"), "editor")
        self.assertEqual(POLICY.role_for("journalist@opiniku.id"), "journalist")

    def test_organization_domain_is_contributor(self):
        self.assertEqual(POLICY.role_for("reporter@opiniku.id"), "contributor")

    def test_substring_lookalikes_are_not_privileged(self):
        self.assertEqual(POLICY.role_for("notadmin@opiniku.id"), "contributor")
        self.assertEqual(POLICY.role_for("editor@opiniku.id.evil.com"), "subscriber")
        self.assertEqual(POLICY.role_for("admin@gmail.com"), "subscriber")

    def test_require_verified_email(self):
        strict = FallbackPolicy(POLICY.role_emails, "opiniku.id", require_verified_email=True)
        self.assertEqual(strict.role_for("admin@opiniku.id", email_verified=False), "subscriber")
        self.assertEqual(strict.role_for("admin@opiniku.id", email_verified=True), "super_admin")

    def test_synthesized_profile_shape(self):
        profile = synthesize_fallback_profile(USER_ID, "editor@opiniku.id", policy=POLICY)

        self.assertEqual(profile.id, f"fallback-{USER_ID}")
        self.assertEqual(profile.user_id, USER_ID)
        self.assertEqual(profile.full_name, "editor")
        self.assertEqual(profile.role, "editor")
        self.assertTrue(profile.is_active)
        self.assertTrue(profile.email_verified)
        self.assertTrue(profile.is_fallback)
        self.assertIsNotNone(profile.last_login_at)

    def test_empty_local_part_uses_placeholder_name(self):
        profile = synthesize_fallback_profile(USER_ID, "", policy=POLICY)
        self.assertEqual(profile.full_name, "User")
        self.assertEqual(profile.role, "subscriber")


class ProfileResolverTests(SimpleTestCase):
    identity = AuthIdentity(id=USER_ID, email="editor@opiniku.id")

    def test_default_timeout_is_ten_seconds(self):
        self.assertEqual(DEFAULT_PROFILE_FETCH_TIMEOUT, 10.0)
        with override_settings(PROFILE_FETCH_TIMEOUT=10.0):
            self.assertEqual(ProfileResolver(StubStore()).timeout, 10.0)

    async def test_stored_profile_is_adopted(self):
        store = StubStore(profile=stored_profile())
        profile = await ProfileResolver(store, timeout=1, policy=POLICY).resolve(self.identity)

        self.assertEqual(profile.role, "journalist")
        self.assertFalse(profile.is_fallback)

    async def test_missing_record_falls_back(self):
        store = StubStore(profile=None)
        profile = await ProfileResolver(store, timeout=1, policy=POLICY).resolve(self.identity)

        self.assertTrue(profile.is_fallback)
        self.assertEqual(profile.role, "editor")
        self.assertEqual(store.writes, 0)

    async def test_store_error_falls_back(self):
        store = StubStore(error=ProfileStoreError("connection refused"))
        profile = await ProfileResolver(store, timeout=1, policy=POLICY).resolve(self.identity)

        self.assertTrue(profile.is_fallback)
        self.assertEqual(profile.role, "editor")

    async def test_policy_error_falls_back(self):
        store = StubStore(error=AccessPolicyError("infinite recursion detected in policy"))
        profile = await ProfileResolver(store, timeout=1, policy=POLICY).resolve(self.identity)

        self.assertTrue(profile.is_fallback)

    async def test_unexpected_error_falls_back(self):
        store = StubStore(error=RuntimeError("boom"))
        with self.assertLogs("authentication.resolver", level="ERROR"):
            profile = await ProfileResolver(store, timeout=1, policy=POLICY).resolve(self.identity)

        self.assertTrue(profile.is_fallback)

    async def test_slow_store_times_out(self):
        store = StubStore(profile=stored_profile(), delay=1.0)
        profile = await ProfileResolver(store, timeout=0.05, policy=POLICY).resolve(self.identity)

        self.assertTrue(profile.is_fallback)
        self.assertEqual(profile.role, "editor")

    async def test_outsider_fallback_is_subscriber(self):
        store = StubStore(error=ProfileStoreError("down"))
        identity = AuthIdentity(id=USER_ID, email="someone@example.com")
        profile = await ProfileResolver(store, timeout=1, policy=POLICY).resolve(identity)

        self.assertEqual(profile.role, "subscriber")


class RequestPathTimeoutTests(SimpleTestCase):
    """The synchronous entry point used by views honours the fetch timeout."""

    user = SimpleNamespace(pk=USER_ID, email="editor@opiniku.id", is_authenticated=True)

    @staticmethod
    def slow_fetch(user_id):
        time.sleep(2.0)
        return stored_profile()

    @override_settings(PROFILE_FETCH_TIMEOUT=0.2)
    def test_slow_query_does_not_hold_the_request(self):
        with mock.patch.object(DjangoProfileStore, "_get_profile", side_effect=self.slow_fetch):
            started = time.monotonic()
            profile = resolve_profile_for_user(self.user)
            elapsed = time.monotonic() - started

        self.assertLess(elapsed, 1.5)
        self.assertTrue(profile.is_fallback)
        self.assertEqual(profile.role, "editor")

    def test_anonymous_user_has_no_profile(self):
        self.assertIsNone(resolve_profile_for_user(SimpleNamespace(is_authenticated=False)))
        self.assertIsNone(resolve_profile_for_user(None))
