"""Account endpoints: registration, token lifecycle, soft delete and the caller's profile."""

from __future__ import annotations

import time
from unittest import mock

import jwt
from django.conf import settings
from django.db import DatabaseError
from django.test import TestCase
from rest_framework.test import APIClient

from access_control.roles import Role
from authentication.models import Profile
from authentication.services import BlocklistUnavailable, TokenService
from tests.utils import FakeRedisMixin, create_user


class AccountTestCase(FakeRedisMixin, TestCase):
    password = "StrongPass123"

    @classmethod
    def setUpTestData(cls):
        cls.user = create_user("user@example.com", cls.password, Role.SUBSCRIBER, full_name="Budi Santoso")

    def setUp(self):
        self.api_client = APIClient()

    def sign_in(self, email=None, password=None):
        return self.api_client.post(
            "/auth/login/",
            {"email": email or self.user.email, "password": password or self.password},
            format="json",
        )

    def tokens(self, email=None) -> dict:
        return self.sign_in(email).json()["data"]

    def bearer(self, access: str) -> APIClient:
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
        return client

    def refresh(self, token: str):
        return self.api_client.post("/auth/refresh/", {"refresh": token}, format="json")

    def assertFailure(self, response, status_code: int):
        """The response carries ``status_code`` and an error envelope."""
        self.assertEqual(response.status_code, status_code)
        body = response.json()
        self.assertIsNone(body["data"])
        self.assertTrue(body["errors"])


class RegistrationTests(AccountTestCase):
    def register(self, **overrides):
        payload = {
            "email": "reader@example.com",
            "password": "ReaderPass123",
            "repeat_password": "ReaderPass123",
            "full_name": "Dewi Lestari",
        }
        payload.update(overrides)
        return self.api_client.post("/auth/register/", payload, format="json")

    def test_register_creates_unverified_subscriber(self):
        response = self.register()

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["errors"], [])
        self.assertEqual(body["data"]["email"], "reader@example.com")
        self.assertEqual(body["data"]["profile"]["role"], "subscriber")

        profile = Profile.objects.get(user__email="reader@example.com")
        self.assertEqual(profile.role, Role.SUBSCRIBER)
        self.assertEqual(profile.full_name, "Dewi Lestari")
        self.assertFalse(profile.email_verified)

    def test_password_mismatch_is_rejected(self):
        self.assertFailure(self.register(repeat_password="Mismatch123"), 400)
        self.assertFalse(Profile.objects.filter(user__email="reader@example.com").exists())

    def test_duplicate_email_is_rejected(self):
        self.assertFailure(self.register(email=self.user.email), 400)


class TokenLifecycleTests(AccountTestCase):
    def test_sign_in_returns_token_pair_and_stamps_last_login(self):
        self.assertIsNone(self.user.profile.last_login_at)

        response = self.sign_in()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(set(response.json()["data"]), {"access", "refresh"})
        self.user.profile.refresh_from_db()
        self.assertIsNotNone(self.user.profile.last_login_at)

    def test_wrong_password_and_inactive_account_are_unauthorized(self):
        self.assertFailure(self.sign_in(password="wrongpass"), 401)

        self.user.is_active = False
        self.user.save(update_fields=["is_active"])
        self.assertFailure(self.sign_in(), 401)

    def test_refresh_rotates_tokens(self):
        issued = self.tokens()

        response = self.refresh(issued["refresh"])

        self.assertEqual(response.status_code, 200)
        self.assertNotEqual(response.json()["data"]["access"], issued["access"])

    def test_refresh_rejects_access_tokens(self):
        self.assertFailure(self.refresh(self.tokens()["access"]), 401)

    def test_refresh_rejects_expired_tokens(self):
        now = int(time.time())
        expired = jwt.encode(
            {
                "sub": str(self.user.id),
                "jti": "expired-jti",
                "exp": now - 60,
                "iat": now - 120,
                "role": self.user.profile.role,
                "type": "refresh",
                "ver": self.user.token_version,
            },
            settings.SECRET_KEY,
            algorithm=TokenService.ALGORITHM,
        )

        self.assertFailure(self.refresh(expired), 401)

    def test_refresh_during_database_outage_is_unavailable(self):
        issued = self.tokens()

        with mock.patch("authentication.views._get_active_user", side_effect=DatabaseError("DB down")):
            response = self.refresh(issued["refresh"])

        self.assertFailure(response, 503)

    def test_logout_blocklists_only_that_token(self):
        first, second = self.bearer(self.tokens()["access"]), self.bearer(self.tokens()["access"])

        self.assertEqual(first.post("/auth/logout/").status_code, 204)

        self.assertEqual(first.get("/auth/me/").status_code, 401)
        self.assertEqual(second.get("/auth/me/").status_code, 200)
        self.assertEqual(self.sign_in().status_code, 200)

    def test_logout_fails_closed_when_blocklist_is_down(self):
        client = self.bearer(self.tokens()["access"])

        with mock.patch.object(TokenService, "block_token", side_effect=BlocklistUnavailable("down")):
            response = client.post("/auth/logout/")

        self.assertFailure(response, 503)

    def test_logout_all_revokes_every_device(self):
        device_a, device_b = self.tokens(), self.tokens()

        self.assertEqual(self.bearer(device_a["access"]).post("/auth/logout-all/").status_code, 204)

        self.assertEqual(self.bearer(device_b["access"]).get("/auth/me/").status_code, 401)
        self.assertFailure(self.refresh(device_a["refresh"]), 401)
        self.assertFailure(self.refresh(device_b["refresh"]), 401)


class SoftDeleteTests(AccountTestCase):
    def test_delete_deactivates_account_and_revokes_tokens(self):
        issued = self.tokens()
        client = self.bearer(issued["access"])

        self.assertEqual(client.delete("/auth/me/").status_code, 204)

        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)
        self.assertEqual(client.get("/auth/me/").status_code, 401)
        self.assertFailure(self.refresh(issued["refresh"]), 401)
        self.assertFailure(self.sign_in(), 401)

    def test_second_device_cannot_delete_again(self):
        device_a, device_b = self.bearer(self.tokens()["access"]), self.bearer(self.tokens()["access"])

        self.assertEqual(device_a.delete("/auth/me/").status_code, 204)
        self.assertEqual(device_b.delete("/auth/me/").status_code, 401)


class MeEndpointTests(AccountTestCase):
    def test_me_returns_profile_and_capabilities(self):
        body = self.bearer(self.tokens()["access"]).get("/auth/me/").json()["data"]

        self.assertEqual(body["email"], self.user.email)
        self.assertEqual(body["profile"]["full_name"], "Budi Santoso")
        self.assertEqual(body["profile"]["role"], "subscriber")
        self.assertFalse(body["profile"]["is_fallback"])
        self.assertEqual(
            body["permissions"],
            {"can_create_articles": False, "can_approve_articles": False, "can_manage_users": False},
        )

    def test_me_without_stored_profile_uses_fallback(self):
        editor = create_user("editor@opiniku.id", self.password, Role.SUBSCRIBER)
        Profile.objects.filter(user=editor).delete()

        body = self.bearer(self.tokens(editor.email)["access"]).get("/auth/me/").json()["data"]

        self.assertTrue(body["profile"]["is_fallback"])
        self.assertEqual(body["profile"]["role"], "editor")
        self.assertEqual(body["profile"]["id"], f"fallback-{editor.id}")
        self.assertTrue(body["permissions"]["can_approve_articles"])
        self.assertFalse(Profile.objects.filter(user=editor).exists())

    def test_patch_updates_profile_fields(self):
        client = self.bearer(self.tokens()["access"])

        response = client.patch("/auth/me/", {"full_name": "Budi S.", "bio": "Pembaca setia"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["full_name"], "Budi S.")
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.bio, "Pembaca setia")

    def test_patch_cannot_change_email_or_role(self):
        client = self.bearer(self.tokens()["access"])

        self.assertFailure(client.patch("/auth/me/", {"email": "new@example.com"}, format="json"), 400)
        self.assertFailure(client.patch("/auth/me/", {"role": "super_admin"}, format="json"), 400)

        self.user.refresh_from_db()
        self.assertEqual(self.user.email, "user@example.com")
        self.assertEqual(self.user.profile.role, Role.SUBSCRIBER)
