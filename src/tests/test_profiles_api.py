"""User management: listing profiles and changing roles within the caller's level."""

from __future__ import annotations

from django.test import TestCase

from access_control.roles import Role
from authentication.models import Profile
from tests.utils import FakeRedisMixin, auth_client, create_user


class ProfileManagementTests(FakeRedisMixin, TestCase):
    @classmethod
    def setUpTestData(cls):
        password = "ManagePass123"
        cls.admin = create_user("kepala@example.com", password, Role.SUPER_ADMIN)
        cls.editor = create_user("redaktur@example.com", password, Role.EDITOR)
        cls.journalist = create_user("jurnalis@example.com", password, Role.JOURNALIST)
        cls.reader = create_user("pembaca@example.com", password, Role.SUBSCRIBER)

    def change_role(self, actor, target, role):
        return auth_client(actor).patch(f"/profiles/{target.profile.id}/role/", {"role": role}, format="json")

    def test_editor_lists_profiles(self):
        response = auth_client(self.editor).get("/profiles/")

        self.assertEqual(response.status_code, 200)
        emails = {p["email"] for p in response.json()["data"]}
        self.assertEqual(
            emails,
            {"kepala@example.com", "redaktur@example.com", "jurnalis@example.com", "pembaca@example.com"},
        )

    def test_list_filters_by_role(self):
        response = auth_client(self.editor).get("/profiles/", {"role": "journalist"})

        self.assertEqual([p["email"] for p in response.json()["data"]], ["jurnalis@example.com"])

    def test_journalist_cannot_list_profiles(self):
        self.assertEqual(auth_client(self.journalist).get("/profiles/").status_code, 403)

    def test_editor_promotes_reader_to_contributor(self):
        response = self.change_role(self.editor, self.reader, "contributor")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Profile.objects.get(user=self.reader).role, Role.CONTRIBUTOR)

    def test_editor_cannot_grant_above_own_level(self):
        response = self.change_role(self.editor, self.reader, "super_admin")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(Profile.objects.get(user=self.reader).role, Role.SUBSCRIBER)

    def test_editor_cannot_demote_a_higher_role(self):
        response = self.change_role(self.editor, self.admin, "subscriber")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(Profile.objects.get(user=self.admin).role, Role.SUPER_ADMIN)

    def test_cannot_change_own_role(self):
        response = self.change_role(self.admin, self.admin, "editor")

        self.assertEqual(response.status_code, 403)

    def test_unknown_role_is_rejected(self):
        response = self.change_role(self.admin, self.reader, "chief")

        self.assertEqual(response.status_code, 400)

    def test_role_change_takes_effect_on_next_request(self):
        self.assertEqual(auth_client(self.journalist).get("/profiles/").status_code, 403)
        self.change_role(self.admin, self.journalist, "editor")

        self.assertEqual(auth_client(self.journalist).get("/profiles/").status_code, 200)

    def set_active(self, actor, target, is_active):
        return auth_client(actor).patch(
            f"/profiles/{target.profile.id}/active/", {"is_active": is_active}, format="json"
        )

    def test_suspended_journalist_loses_back_office_access(self):
        self.assertEqual(auth_client(self.journalist).get("/manage/articles/").status_code, 200)

        response = self.set_active(self.editor, self.journalist, False)

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["data"]["is_active"])
        self.assertEqual(auth_client(self.journalist).get("/manage/articles/").status_code, 403)
        permissions = auth_client(self.journalist).get("/auth/me/").json()["data"]["permissions"]
        self.assertEqual(set(permissions.values()), {False})

    def test_reinstated_profile_regains_access(self):
        self.set_active(self.editor, self.journalist, False)

        response = self.set_active(self.editor, self.journalist, True)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(auth_client(self.journalist).get("/manage/articles/").status_code, 200)

    def test_cannot_suspend_self_or_higher_role(self):
        self.assertEqual(self.set_active(self.editor, self.editor, False).status_code, 403)
        self.assertEqual(self.set_active(self.editor, self.admin, False).status_code, 403)
        self.assertTrue(Profile.objects.get(user=self.admin).is_active)

    def test_journalist_cannot_suspend(self):
        self.assertEqual(self.set_active(self.journalist, self.reader, False).status_code, 403)
        self.assertTrue(Profile.objects.get(user=self.reader).is_active)
